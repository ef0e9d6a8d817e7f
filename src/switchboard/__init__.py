"""Switchboard: one async contract over many text-generation backends.

Public API:
    - generate(): One-shot generation against a provider id
    - ProviderRegistry / build_registry(): Adapters keyed by provider id
    - ProviderAdapter: generate / stream_generate / list_models / test_connection
    - GenerationRequest / GenerationResult: Request and result models
    - ProviderConfig: Immutable per-provider configuration snapshot
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from switchboard.adapter import ProviderAdapter
from switchboard.cancellation import CancellationBridge, CancellationSignal, CancellationSource
from switchboard.catalog import builtin_profiles, profiles_by_id
from switchboard.config import ProviderConfig
from switchboard.errors import (
    CancellationError,
    ConfigurationError,
    InternalError,
    NetworkError,
    ParseError,
    RemoteAPIError,
    SwitchboardError,
)
from switchboard.extraction import RawReply, ToolCallExtractor
from switchboard.formatting import (
    DelimitedFormatter,
    FormattedPrompt,
    MessagesFormatter,
    PromptFormatter,
)
from switchboard.registry import ProviderRegistry, build_registry
from switchboard.retry import RetryPolicy, retry_async
from switchboard.types import (
    ConfigField,
    ConnectionStatus,
    ConversationMessage,
    GenerationRequest,
    GenerationResult,
    ModelInfo,
    ToolCallRequest,
    ToolDefinition,
    Usage,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("switchboard-llm")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("switchboard").addHandler(logging.NullHandler())

logger = logging.getLogger(__name__)


async def generate(
    provider_id: str,
    prompt: str,
    *,
    model: str = "",
    system_prompt: str | None = None,
    config: ProviderConfig | None = None,
    cancel: CancellationSignal | None = None,
    tools: Mapping[str, ToolDefinition] | None = None,
) -> GenerationResult:
    """Run a single prompt against *provider_id* with a throwaway adapter.

    Args:
        provider_id: A built-in provider id such as ``"ollama"``.
        prompt: The user prompt.
        model: Model id; the configured or built-in default when empty.
        system_prompt: Optional system instruction.
        config: Configuration snapshot; resolved from the environment if omitted.
        cancel: Optional cancellation signal.
        tools: Tools the model may request.

    Returns:
        GenerationResult; failures are reported in ``error``.

    Example:
        result = await generate("ollama", "Write a haiku about retries")
        print(result.content)
    """
    profile = profiles_by_id().get(provider_id)
    if profile is None:
        raise ConfigurationError(
            f"Unknown provider: {provider_id!r}",
            hint=f"Known providers: {', '.join(sorted(profiles_by_id()))}.",
        )
    adapter = ProviderAdapter(profile, config)
    request = GenerationRequest(model_id=model, prompt=prompt, system_prompt=system_prompt)
    try:
        return await adapter.generate(request, cancel, tools)
    finally:
        try:
            await adapter.aclose()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            # Cleanup should never mask the primary failure.
            logger.warning("Adapter cleanup failed: %s", exc)


# Re-export for convenience
__all__ = [
    "CancellationBridge",
    "CancellationError",
    "CancellationSignal",
    "CancellationSource",
    "ConfigField",
    "ConfigurationError",
    "ConnectionStatus",
    "ConversationMessage",
    "DelimitedFormatter",
    "FormattedPrompt",
    "GenerationRequest",
    "GenerationResult",
    "InternalError",
    "MessagesFormatter",
    "ModelInfo",
    "NetworkError",
    "ParseError",
    "PromptFormatter",
    "ProviderAdapter",
    "ProviderConfig",
    "ProviderRegistry",
    "RawReply",
    "RemoteAPIError",
    "RetryPolicy",
    "SwitchboardError",
    "ToolCallExtractor",
    "ToolCallRequest",
    "ToolDefinition",
    "Usage",
    "build_registry",
    "builtin_profiles",
    "generate",
    "retry_async",
]
