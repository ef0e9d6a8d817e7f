"""ProviderAdapter: the uniform contract over any backend profile.

One concrete class serves every backend. Behaviour that differs per backend
lives in the strategy objects it is composed of:

- ``BackendProfile``: metadata plus the wire ``BackendCodec``
- ``PromptFormatter``: request → messages or delimited text
- ``ToolCallExtractor``: reply → content or one tool call
- ``RetryPolicy``: bounded backoff for transient transport failures
- ``Transport``: performs the HTTP calls

Public operations never raise for backend failures; they return
``GenerationResult`` / ``ConnectionStatus`` values instead. Only
``stream_generate`` raises, from the iterator, because a stream has no
result object to carry the error.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import replace
import logging
from typing import TYPE_CHECKING, Any

from switchboard.cancellation import CancellationBridge
from switchboard.config import ProviderConfig, api_key_env_vars
from switchboard.errors import (
    CancellationError,
    ConfigurationError,
    InternalError,
    RemoteAPIError,
    SwitchboardError,
)
from switchboard.extraction import ToolCallExtractor
from switchboard.providers.base import CallContext
from switchboard.retry import RetryPolicy, retry_async
from switchboard.state import CallState, CallStateMachine
from switchboard.streaming import iter_events
from switchboard.transport import HttpTransport
from switchboard.types import ConfigField, ConnectionStatus, GenerationResult

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable

    from switchboard.cancellation import CancellationSignal
    from switchboard.formatting import PromptFormatter
    from switchboard.providers.base import BackendCapabilities, BackendProfile
    from switchboard.transport import Transport
    from switchboard.types import GenerationRequest, ModelInfo, ToolDefinition

logger = logging.getLogger(__name__)

DEFAULT_RETRY_POLICY = RetryPolicy()


class ProviderAdapter:
    """Uniform generate / stream / list / probe contract for one backend.

    Example:
        adapter = ProviderAdapter(profile, ProviderConfig.for_provider("ollama"))
        result = await adapter.generate(GenerationRequest(model_id="", prompt="hi"))
    """

    def __init__(
        self,
        profile: BackendProfile,
        config: ProviderConfig | None = None,
        *,
        transport: Transport | None = None,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        formatter: PromptFormatter | None = None,
        extractor: ToolCallExtractor | None = None,
    ) -> None:
        """Compose the adapter; strategy overrides default to the profile's."""
        self.profile = profile
        self.formatter = formatter or profile.formatter
        self.extractor = extractor or ToolCallExtractor(profile.tool_strategy or "native")
        self.retry_policy = retry_policy
        self._owns_transport = transport is None
        self._transport: Transport = transport or HttpTransport()
        self._config = (
            config
            if config is not None
            else ProviderConfig.for_provider(profile.provider_id)
        )
        self._models_cache: list[ModelInfo] | None = None

    # -- metadata ---------------------------------------------------------

    @property
    def provider_id(self) -> str:
        """Registry key."""
        return self.profile.provider_id

    @property
    def display_name(self) -> str:
        """Human-readable backend name."""
        return self.profile.display_name

    @property
    def capabilities(self) -> BackendCapabilities:
        """Feature flags of the backend."""
        return self.profile.capabilities

    @property
    def config(self) -> ProviderConfig:
        """Current configuration snapshot."""
        return self._config

    def reload(self, config: ProviderConfig) -> None:
        """Replace the configuration snapshot.

        Calls already in flight keep the snapshot they started with.
        """
        self._config = config
        self._models_cache = None
        logger.debug("Reloaded %s configuration: %s", self.provider_id, config)

    def is_configured(self, config: ProviderConfig | None = None) -> bool:
        """Whether the snapshot carries everything needed to make calls."""
        cfg = config if config is not None else self._config
        return not self.profile.requires_api_key or bool(cfg.api_key)

    def configuration_fields(self) -> list[ConfigField]:
        """Describe the settings a configuration UI should offer."""
        profile = self.profile
        fields: list[ConfigField] = []
        if profile.requires_api_key:
            fields.append(
                ConfigField(
                    id="api_key",
                    name="API Key",
                    description=(
                        f"Your {profile.display_name} API key "
                        f"(or set {api_key_env_vars(profile.provider_id)[0]})"
                    ),
                    required=True,
                )
            )
        fields.append(
            ConfigField(
                id="api_endpoint",
                name="API Endpoint",
                description=f"Base URL (default: {profile.default_endpoint})",
                required=False,
            )
        )
        fields.append(
            ConfigField(
                id="default_model",
                name="Default Model",
                description="Model used when a request does not name one",
                required=False,
                type="select" if profile.static_models else "string",
                options=tuple(m.id for m in profile.static_models),
            )
        )
        return fields

    # -- helpers ----------------------------------------------------------

    def _model_for(self, model_id: str | None, config: ProviderConfig) -> str:
        return model_id or config.default_model or self.profile.default_model

    def _context(
        self,
        config: ProviderConfig,
        model: str,
        options: Mapping[str, Any] | None = None,
    ) -> CallContext:
        merged = dict(config.extra_options)
        if options:
            merged.update(options)
        return CallContext(
            endpoint=config.endpoint_or(self.profile.default_endpoint),
            model=model,
            api_key=config.api_key,
            timeout_s=config.timeout_s,
            options=merged,
        )

    def _require_configured(self, config: ProviderConfig) -> None:
        if not self.is_configured(config):
            raise ConfigurationError(
                f"{self.display_name} provider not configured (API key missing?)",
                hint=f"Set {api_key_env_vars(self.provider_id)[0]} or ProviderConfig.api_key.",
            )

    # -- generate ---------------------------------------------------------

    async def generate(
        self,
        request: GenerationRequest,
        cancel: CancellationSignal | None = None,
        tools: Mapping[str, ToolDefinition] | Iterable[ToolDefinition] | None = None,
    ) -> GenerationResult:
        """Run one generation; failures come back as data, never as exceptions.

        *tools* is merged into ``request.tool_definitions``. Cancellation
        through *cancel* yields ``finish_reason="cancelled"``; cancelling
        the calling task itself propagates ``asyncio.CancelledError``.
        """
        config = self._config
        machine = CallStateMachine(f"{self.provider_id} generate")
        bridge = CancellationBridge(cancel)
        try:
            result = await self._generate(request, config, bridge, tools, machine)
        except asyncio.CancelledError:
            machine.finish(CallState.CANCELLED)
            raise
        except CancellationError as exc:
            machine.finish(CallState.CANCELLED)
            logger.info("%s request cancelled", self.display_name)
            return GenerationResult.cancelled(str(exc))
        except SwitchboardError as exc:
            machine.finish(CallState.FAILED)
            logger.warning("%s generate failed: %s", self.display_name, exc)
            return GenerationResult.failure(exc)
        except Exception as exc:
            machine.finish(CallState.FAILED)
            logger.exception("Unexpected error during %s generate", self.display_name)
            return GenerationResult.failure(
                InternalError(f"Unexpected error: {type(exc).__name__}: {exc}")
            )
        machine.finish(CallState.COMPLETED)
        return result

    async def _generate(
        self,
        request: GenerationRequest,
        config: ProviderConfig,
        bridge: CancellationBridge,
        tools: Mapping[str, ToolDefinition] | Iterable[ToolDefinition] | None,
        machine: CallStateMachine,
    ) -> GenerationResult:
        bridge.check()
        self._require_configured(config)

        machine.advance(CallState.FORMATTING)
        if tools:
            request = replace(request, tool_definitions=_merge_tools(request, tools))
        prompt = self.formatter.format(request)
        ctx = self._context(
            config, self._model_for(request.model_id, config), request.options
        )
        call = self.profile.codec.build_call(prompt, request, ctx, stream=False)

        machine.advance(CallState.SENDING)

        async def attempt() -> Any:
            if machine.state is CallState.RETRYING:
                machine.advance(CallState.SENDING)
            machine.advance(CallState.WAITING)
            return await bridge.run(
                lambda: self._transport.send(
                    call, provider=self.provider_id, phase="generate"
                )
            )

        def on_retry(attempt_no: int, exc: BaseException, delay: float) -> None:
            machine.advance(CallState.RETRYING)
            logger.info(
                "%s request failed (%s); retry %d/%d in %.2fs",
                self.display_name,
                exc,
                attempt_no + 1,
                self.retry_policy.max_retries,
                delay,
            )

        data = await retry_async(
            attempt, policy=self.retry_policy, bridge=bridge, on_retry=on_retry
        )
        reply = self.profile.codec.parse_response(data)
        return self.extractor.extract(reply, request.tools())

    # -- streaming --------------------------------------------------------

    async def stream_generate(
        self,
        request: GenerationRequest,
        cancel: CancellationSignal | None = None,
    ) -> AsyncIterator[str]:
        """Yield text fragments in the order the backend emits them.

        Opening the stream is retried under the adapter's policy; once a
        fragment has been produced nothing is retried. Cancellation ends the
        iteration quietly. Backends without a streaming wire format yield the
        complete generation as one fragment.

        Raises:
            ConfigurationError: The adapter is not configured.
            NetworkError: The backend could not be reached.
            RemoteAPIError: The backend rejected the request.
        """
        config = self._config
        bridge = CancellationBridge(cancel)
        if bridge.requested:
            return
        self._require_configured(config)
        codec = self.profile.codec

        if codec.stream_framing is None:
            machine = CallStateMachine(f"{self.provider_id} stream")
            try:
                result = await self._generate(request, config, bridge, None, machine)
            except CancellationError:
                return
            if result.content:
                yield result.content
            return

        prompt = self.formatter.format(request)
        ctx = self._context(
            config, self._model_for(request.model_id, config), request.options
        )
        call = codec.build_call(prompt, request, ctx, stream=True)
        framing = codec.stream_framing

        try:
            handle = await retry_async(
                lambda: bridge.run(
                    lambda: self._transport.open_stream(
                        call, provider=self.provider_id, phase="stream"
                    )
                ),
                policy=self.retry_policy,
                bridge=bridge,
            )
        except CancellationError:
            return

        async def fragments() -> AsyncIterator[str]:
            async for event in iter_events(framing, handle.lines()):
                text = codec.parse_stream_event(event)
                if text:
                    yield text

        try:
            async for fragment in bridge.stream(fragments):
                yield fragment
        finally:
            await handle.aclose()

    # -- models and connectivity -------------------------------------------

    async def list_models(self) -> list[ModelInfo]:
        """Best-effort model listing for UI population.

        Falls back to the last successful listing, then to the profile's
        static list; never raises for backend failures.
        """
        config = self._config
        fallback = list(self._models_cache or self.profile.static_models)
        if not self.is_configured(config):
            return fallback
        codec = self.profile.codec
        call = codec.models_call(self._context(config, self._model_for(None, config)))
        if call is None:
            return fallback
        try:
            data = await self._transport.send(
                call, provider=self.provider_id, phase="list_models"
            )
            models = codec.parse_models(data)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning(
                "Could not list %s models, using fallback list: %s",
                self.display_name,
                exc,
            )
            return fallback
        if not models:
            return fallback
        self._models_cache = models
        return list(models)

    async def test_connection(self, model_id: str | None = None) -> ConnectionStatus:
        """Probe reachability and credentials with the cheapest backend call."""
        config = self._config
        name = self.display_name
        if not self.is_configured(config):
            return ConnectionStatus(
                success=False,
                message=f"{name} is not configured: API key missing",
            )
        model = self._model_for(model_id, config)
        call = self.profile.codec.probe_call(self._context(config, model))
        try:
            await self._transport.send(
                call, provider=self.provider_id, phase="test_connection"
            )
        except asyncio.CancelledError:
            raise
        except RemoteAPIError as exc:
            if exc.status_code in {401, 403}:
                message = f"Authentication with {name} failed: {exc}"
            elif exc.status_code == 404 and model:
                message = f"{name} is reachable but model {model!r} was not found: {exc}"
            else:
                message = f"{name} rejected the request: {exc}"
            return ConnectionStatus(success=False, message=message)
        except SwitchboardError as exc:
            return ConnectionStatus(
                success=False, message=f"Failed to connect to {name}: {exc}"
            )
        except Exception as exc:
            logger.exception("Unexpected error while testing %s", name)
            return ConnectionStatus(
                success=False, message=f"Unexpected error while testing {name}: {exc}"
            )
        suffix = f" (model: {model})" if model else ""
        return ConnectionStatus(success=True, message=f"Successfully connected to {name}{suffix}")

    async def aclose(self) -> None:
        """Release the transport if this adapter created it."""
        if self._owns_transport:
            await self._transport.aclose()


def _merge_tools(
    request: GenerationRequest,
    tools: Mapping[str, ToolDefinition] | Iterable[ToolDefinition],
) -> dict[str, ToolDefinition]:
    merged = dict(request.tool_definitions or {})
    if isinstance(tools, Mapping):
        merged.update(tools)
    else:
        merged.update({tool.name: tool for tool in tools})
    return merged
