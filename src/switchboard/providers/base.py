"""Backend codec protocol and profile: the per-backend strategy objects."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping

    from switchboard.extraction import RawReply, ToolStrategy
    from switchboard.formatting import FormattedPrompt, PromptFormatter
    from switchboard.streaming import Framing
    from switchboard.transport import HttpCall
    from switchboard.types import GenerationRequest, ModelInfo


@dataclass(frozen=True)
class CallContext:
    """Per-call values resolved from the config snapshot and profile."""

    endpoint: str
    model: str
    api_key: str | None = None
    timeout_s: float | None = None
    #: ``extra_options`` then request ``options``, merged into the payload.
    options: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BackendCapabilities:
    """Feature flags exposed by a backend."""

    streaming: bool
    native_tools: bool
    model_listing: bool


@runtime_checkable
class BackendCodec(Protocol):
    """Translates between the uniform contract and one backend's wire format."""

    #: How streamed bodies are framed; ``None`` when the backend cannot stream.
    stream_framing: Framing | None
    #: Whether ``models_call`` returns a request.
    lists_models: bool

    def build_call(
        self,
        prompt: FormattedPrompt,
        request: GenerationRequest,
        ctx: CallContext,
        *,
        stream: bool = False,
    ) -> HttpCall:
        """Build the generation request."""
        ...

    def parse_response(self, data: Any) -> RawReply:
        """Project a complete response body."""
        ...

    def parse_stream_event(self, event: Any) -> str | None:
        """Return the text fragment carried by one stream event, if any."""
        ...

    def models_call(self, ctx: CallContext) -> HttpCall | None:
        """Build the model-listing request, or ``None`` when unsupported."""
        ...

    def parse_models(self, data: Any) -> list[ModelInfo]:
        """Project a model-listing body."""
        ...

    def probe_call(self, ctx: CallContext) -> HttpCall:
        """Build the cheapest request that proves reachability and credentials."""
        ...


@dataclass(frozen=True)
class BackendProfile:
    """Static description of one backend plus its strategy objects."""

    provider_id: str
    display_name: str
    codec: BackendCodec
    formatter: PromptFormatter
    default_endpoint: str
    default_model: str = ""
    description: str = ""
    website: str | None = None
    requires_api_key: bool = True
    #: ``None`` when the backend ignores tool definitions.
    tool_strategy: ToolStrategy | None = None
    static_models: tuple[ModelInfo, ...] = ()

    @property
    def capabilities(self) -> BackendCapabilities:
        """Derived feature flags."""
        return BackendCapabilities(
            streaming=self.codec.stream_framing is not None,
            native_tools=self.tool_strategy == "native",
            model_listing=self.codec.lists_models,
        )
