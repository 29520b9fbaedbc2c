"""In-memory registry of configured generation providers.

Usage:
    from mediagen.services.providers.registry import build_registry
    registry = build_registry(get_settings())
    provider = registry.get("volcano")
    registry.default_for("video")
"""

from __future__ import annotations

import logging

from mediagen.config import Settings
from mediagen.models.generation_task import MediaKind
from mediagen.services.errors import ProviderNotFoundError
from mediagen.services.providers.base import GenerationProvider

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Name → provider lookup plus per-media-kind defaults."""

    def __init__(self, defaults: dict[str, str] | None = None) -> None:
        self._providers: dict[str, GenerationProvider] = {}
        self._defaults = dict(defaults or {})

    def register(self, provider: GenerationProvider) -> None:
        self._providers[provider.name] = provider

    def get(self, name: str) -> GenerationProvider:
        provider = self._providers.get(name)
        if provider is None:
            logger.error(
                "Provider not found: %s (available: %s)", name, self.provider_names()
            )
            raise ProviderNotFoundError(f"invalid ai provider: {name}")
        return provider

    def provider_names(self) -> list[str]:
        return sorted(self._providers)

    def media_kinds(self) -> list[str]:
        kinds = {k.value for p in self._providers.values() for k in p.media_kinds}
        return sorted(kinds)

    def default_for(self, media_kind: MediaKind | str) -> GenerationProvider:
        """Return the configured default provider for a media kind.

        Falls back to the first registered provider supporting the kind.
        """
        kind = MediaKind(media_kind)
        name = self._defaults.get(kind.value)
        if name in self._providers and self._providers[name].supports(kind):
            return self._providers[name]
        for provider in self._providers.values():
            if provider.supports(kind):
                return provider
        raise ProviderNotFoundError(f"no provider configured for {kind.value}")


def build_registry(settings: Settings) -> ProviderRegistry:
    """Register every provider whose credentials are configured."""
    from mediagen.services.providers.kling import KlingProvider
    from mediagen.services.providers.mock import MockProvider
    from mediagen.services.providers.volcano import VolcanoProvider

    registry = ProviderRegistry(defaults=settings.default_providers)

    if settings.ARK_API_KEY:
        registry.register(VolcanoProvider(
            api_key=settings.ARK_API_KEY,
            base_url=settings.ARK_ENDPOINT,
            timeout=settings.PROVIDER_TIMEOUT,
        ))
    if settings.KLING_API_KEY:
        registry.register(KlingProvider(
            api_key=settings.KLING_API_KEY,
            base_url=settings.KLING_BASE_URL,
            timeout=settings.PROVIDER_TIMEOUT,
        ))
    if settings.USE_MOCK_API:
        registry.register(MockProvider(media_base_url=settings.MEDIA_BASE_URL))

    if not registry.provider_names():
        logger.warning("No generation providers configured (set ARK_API_KEY, KLING_API_KEY or USE_MOCK_API)")
    else:
        logger.info("Registered providers: %s", ", ".join(registry.provider_names()))
    return registry
