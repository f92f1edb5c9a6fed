"""
Grid Registry - provider types and named provider instances.

Provider types (e.g. "geojson", "grid5k") are registered with an init
function that builds a provider from a config dict. Named instances are
built from a list of provider configs and can refer to each other by
name, so a "grid5k" provider can wrap a previously loaded 50K provider.

Usage:
    from grid_registry import default_registry

    registry = default_registry()
    registry.load_providers([
        {"name": "grid50k", "type": "geojson", "file": "cells.geojson"},
        {"name": "grid5k", "type": "grid5k", "provider": "grid50k"},
    ])
    cell = registry.named("grid5k").cell_for_lat_lng(57.1, 5.2)
"""

import threading
from typing import Any, Callable, Dict, List, Optional

from grid_cells import GridError, Provider

ProviderConfig = Dict[str, Any]
InitFunc = Callable[[ProviderConfig, 'Registry'], Provider]
CleanupFunc = Callable[[], None]

CONFIG_KEY_NAME = "name"
CONFIG_KEY_TYPE = "type"


class ProviderAlreadyRegisteredError(GridError):
    def __init__(self, provider_type: str):
        self.provider_type = provider_type
        super().__init__(f"grid provider type already registered: {provider_type}")


class ProviderNotRegisteredError(GridError):
    def __init__(self, provider_type: str):
        self.provider_type = provider_type
        super().__init__(f"grid provider type not registered: {provider_type}")


class ProviderNotFoundError(GridError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"no grid provider named: {name}")


class Registry:
    """Registry of provider types and named provider instances.

    Lookups and registration are safe to call from multiple threads.
    """

    def __init__(self):
        self._types: Dict[str, InitFunc] = {}
        self._cleanups: Dict[str, CleanupFunc] = {}
        self._named: Dict[str, Provider] = {}
        self._lock = threading.Lock()

    def register(self, provider_type: str, init: InitFunc, cleanup: Optional[CleanupFunc] = None) -> None:
        """Register a provider type.

        Raises:
            ProviderAlreadyRegisteredError: provider_type is already registered
        """
        with self._lock:
            if provider_type in self._types:
                raise ProviderAlreadyRegisteredError(provider_type)
            self._types[provider_type] = init
            if cleanup is not None:
                self._cleanups[provider_type] = cleanup

    def unregister(self, provider_type: str) -> None:
        """Remove a provider type, running its cleanup function if it has one."""
        with self._lock:
            if provider_type not in self._types:
                raise ProviderNotRegisteredError(provider_type)
            del self._types[provider_type]
            cleanup = self._cleanups.pop(provider_type, None)
        if cleanup is not None:
            cleanup()

    def registered(self) -> List[str]:
        """Sorted list of registered provider types."""
        with self._lock:
            return sorted(self._types)

    def provider_for(self, provider_type: str, config: ProviderConfig) -> Provider:
        """Build a provider of provider_type from config."""
        with self._lock:
            init = self._types.get(provider_type)
        if init is None:
            raise ProviderNotRegisteredError(provider_type)
        # init may call back into named(), so it runs outside the lock
        return init(config, self)

    def add_named(self, name: str, provider: Provider) -> None:
        with self._lock:
            self._named[name] = provider

    def named(self, name: str) -> Provider:
        with self._lock:
            provider = self._named.get(name)
        if provider is None:
            raise ProviderNotFoundError(name)
        return provider

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._named)

    def load_providers(self, configs: List[ProviderConfig]) -> Dict[str, Provider]:
        """Build and name providers from a list of configs, in order.

        Each config needs a "name" and a "type"; the rest is passed to the
        type's init function. Later providers may refer to earlier ones.

        Returns:
            Dictionary of the providers loaded, by name
        """
        loaded = {}
        for config in configs:
            name = str(config.get(CONFIG_KEY_NAME, "")).strip()
            provider_type = str(config.get(CONFIG_KEY_TYPE, "")).strip()
            if not name:
                raise GridError(f"provider config is missing a name: {config}")
            if not provider_type:
                raise GridError(f"provider {name} is missing a type")

            print(f"  Loading grid provider {name} ({provider_type})")
            provider = self.provider_for(provider_type, config)
            self.add_named(name, provider)
            loaded[name] = provider
        return loaded

    def cleanup(self) -> None:
        """Run all cleanup functions and drop named providers."""
        with self._lock:
            cleanups = list(self._cleanups.values())
            self._named.clear()
        for cleanup in cleanups:
            cleanup()


def default_registry() -> Registry:
    """Registry with the built-in provider types registered."""
    import cell_providers
    import grid5k

    registry = Registry()
    registry.register(cell_providers.TYPE, cell_providers.new_geojson_provider)
    registry.register(grid5k.TYPE, grid5k.new_grid5k_provider)
    return registry
