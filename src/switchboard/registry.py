"""Provider registry: adapters keyed by provider id."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from switchboard.adapter import ProviderAdapter
from switchboard.catalog import builtin_profiles
from switchboard.config import ProviderConfig

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from switchboard.providers.base import BackendProfile
    from switchboard.retry import RetryPolicy
    from switchboard.transport import Transport

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Thin lookup table; it never decides which backend to use."""

    def __init__(self, adapters: Iterable[ProviderAdapter] = ()) -> None:
        self._adapters: dict[str, ProviderAdapter] = {}
        for adapter in adapters:
            self.register(adapter)

    def register(self, adapter: ProviderAdapter) -> None:
        """Add *adapter*, replacing any adapter with the same id."""
        if adapter.provider_id in self._adapters:
            logger.warning("Replacing registered provider %r", adapter.provider_id)
        self._adapters[adapter.provider_id] = adapter

    def get(self, provider_id: str) -> ProviderAdapter | None:
        """Return the adapter for *provider_id*, or ``None``."""
        adapter = self._adapters.get(provider_id)
        if adapter is None:
            logger.warning("Provider %r is not registered", provider_id)
        return adapter

    def get_configured(self, provider_id: str) -> ProviderAdapter | None:
        """Like ``get`` but only for adapters that are ready to make calls."""
        adapter = self.get(provider_id)
        if adapter is None or not adapter.is_configured():
            return None
        return adapter

    def all(self) -> list[ProviderAdapter]:
        """All adapters in registration order."""
        return list(self._adapters.values())

    def configured(self) -> list[ProviderAdapter]:
        """Adapters whose configuration is complete."""
        return [a for a in self._adapters.values() if a.is_configured()]

    def ids(self) -> list[str]:
        """Registered provider ids."""
        return list(self._adapters)

    def reload(self, provider_id: str, config: ProviderConfig) -> bool:
        """Swap *provider_id*'s configuration; ``False`` if it is unknown."""
        adapter = self.get(provider_id)
        if adapter is None:
            return False
        adapter.reload(config)
        return True

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._adapters

    def __len__(self) -> int:
        return len(self._adapters)

    async def aclose(self) -> None:
        """Close every adapter's transport."""
        for adapter in self._adapters.values():
            await adapter.aclose()


def build_registry(
    configs: Mapping[str, ProviderConfig] | None = None,
    *,
    transport: Transport | None = None,
    retry_policy: RetryPolicy | None = None,
    profiles: Iterable[BackendProfile] | None = None,
) -> ProviderRegistry:
    """Build a registry with one adapter per profile (default: built-ins).

    Backends without an entry in *configs* get a snapshot resolved from the
    environment. A shared *transport* is not closed by the adapters.
    """
    configs = configs or {}
    registry = ProviderRegistry()
    for profile in profiles if profiles is not None else builtin_profiles():
        config = configs.get(profile.provider_id) or ProviderConfig.for_provider(
            profile.provider_id
        )
        kwargs = {"transport": transport}
        if retry_policy is not None:
            kwargs["retry_policy"] = retry_policy
        registry.register(ProviderAdapter(profile, config, **kwargs))
    return registry
