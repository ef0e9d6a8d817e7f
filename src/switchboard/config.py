"""Configuration: immutable per-provider snapshots.

Adapters hold one ``ProviderConfig`` behind a single reference. Reloading
replaces the whole object; nothing mutates a snapshot in place, so
concurrent calls see either the old or the new configuration, never a mix.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
import os
from types import MappingProxyType
from typing import Any

from dotenv import load_dotenv

from switchboard.errors import ConfigurationError

load_dotenv()

DEFAULT_TIMEOUT_S = 60.0

# Conventional environment variables, checked before SWITCHBOARD_<ID>_API_KEY.
_API_KEY_ENV_VARS: dict[str, tuple[str, ...]] = {
    "openai": ("OPENAI_API_KEY",),
    "anthropic": ("ANTHROPIC_API_KEY",),
    "googleai": ("GEMINI_API_KEY", "GOOGLE_API_KEY"),
    "mistralai": ("MISTRAL_API_KEY",),
    "cohere": ("COHERE_API_KEY", "CO_API_KEY"),
    "deepseek": ("DEEPSEEK_API_KEY",),
    "openrouter": ("OPENROUTER_API_KEY",),
    "perplexity": ("PERPLEXITY_API_KEY", "PPLX_API_KEY"),
    "togetherai": ("TOGETHER_API_KEY",),
    "ai21": ("AI21_API_KEY",),
    "alephalpha": ("AA_TOKEN", "ALEPH_ALPHA_API_KEY"),
    "huggingface": ("HF_TOKEN", "HUGGINGFACE_API_KEY"),
}

# Backends served through the Hugging Face Inference API share its token.
_HF_BACKED = frozenset(
    {
        "noushermes",
        "phi",
        "starcoder",
        "stablecode",
        "wizardcoder",
        "xwincoder",
        "yicode",
        "codeparrot",
    }
)

# camelCase keys used by the original settings store.
_KEY_ALIASES = {
    "apiKey": "api_key",
    "apiEndpoint": "api_endpoint",
    "defaultModel": "default_model",
    "extraOptions": "extra_options",
    "timeout": "timeout_s",
}


def api_key_env_vars(provider_id: str) -> tuple[str, ...]:
    """Return the environment variables consulted for *provider_id*'s key."""
    names = _API_KEY_ENV_VARS.get(provider_id, ())
    if provider_id in _HF_BACKED:
        names = names + _API_KEY_ENV_VARS["huggingface"]
    generic = f"SWITCHBOARD_{provider_id.upper()}_API_KEY"
    return (*names, generic)


def resolve_api_key(provider_id: str) -> str | None:
    """Return the first non-empty key found in the environment."""
    for name in api_key_env_vars(provider_id):
        value = os.environ.get(name)
        if value:
            return value
    return None


@dataclass(frozen=True)
class ProviderConfig:
    """Immutable configuration snapshot for one adapter.

    Example:
        config = ProviderConfig.for_provider("ollama", api_endpoint="http://gpu:11434")
    """

    api_key: str | None = None
    #: Base URL; the backend profile's default endpoint is used when *None*.
    api_endpoint: str | None = None
    default_model: str | None = None
    #: Extra payload fields merged into every request (backend-specific).
    extra_options: Mapping[str, Any] = field(default_factory=dict)
    timeout_s: float = DEFAULT_TIMEOUT_S

    def __post_init__(self) -> None:
        """Validate and freeze the snapshot."""
        if not isinstance(self.extra_options, Mapping):
            raise ConfigurationError(
                "extra_options must be a mapping",
                hint="Pass extra_options={'top_p': 0.9}.",
            )
        if not isinstance(self.timeout_s, (int, float)) or self.timeout_s <= 0:
            raise ConfigurationError(
                f"timeout_s must be > 0, got {self.timeout_s!r}",
                hint="This bounds each HTTP request in seconds.",
            )
        if self.api_endpoint is not None:
            endpoint = self.api_endpoint.strip().rstrip("/")
            if not endpoint.startswith(("http://", "https://")):
                raise ConfigurationError(
                    f"api_endpoint must be an http(s) URL, got {self.api_endpoint!r}",
                    hint="For example: http://localhost:11434",
                )
            object.__setattr__(self, "api_endpoint", endpoint)
        object.__setattr__(
            self, "extra_options", MappingProxyType(dict(self.extra_options))
        )

    @classmethod
    def for_provider(cls, provider_id: str, **kwargs: Any) -> ProviderConfig:
        """Build a snapshot, auto-resolving the API key from the environment."""
        if kwargs.get("api_key") is None:
            kwargs["api_key"] = resolve_api_key(provider_id)
        return cls(**kwargs)

    @classmethod
    def from_mapping(
        cls, data: Mapping[str, Any], *, provider_id: str | None = None
    ) -> ProviderConfig:
        """Build a snapshot from a settings dict (snake_case or camelCase keys).

        Unknown keys are rejected so typos surface early.
        """
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            name = _KEY_ALIASES.get(key, key)
            if name not in {
                "api_key",
                "api_endpoint",
                "default_model",
                "extra_options",
                "timeout_s",
            }:
                raise ConfigurationError(
                    f"Unknown provider config key: {key!r}",
                    hint="Supported: apiKey, apiEndpoint, defaultModel, extraOptions, timeout.",
                )
            if value in (None, ""):
                continue
            kwargs[name] = value
        if provider_id is not None:
            return cls.for_provider(provider_id, **kwargs)
        return cls(**kwargs)

    def endpoint_or(self, default: str) -> str:
        """Return the configured endpoint, falling back to *default*."""
        return (self.api_endpoint or default).rstrip("/")

    def __str__(self) -> str:
        """Return a redacted, developer-friendly representation."""
        return (
            f"ProviderConfig(api_key={'[REDACTED]' if self.api_key else None}, "
            f"api_endpoint={self.api_endpoint!r}, default_model={self.default_model!r})"
        )

    __repr__ = __str__
