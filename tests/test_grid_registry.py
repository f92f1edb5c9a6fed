"""
Tests for grid_registry module.

Run with: pytest tests/test_grid_registry.py -v
"""

import pytest
from grid_cells import CellSize, GridError, Provider, new_cell
from grid_registry import (
    ProviderAlreadyRegisteredError,
    ProviderNotFoundError,
    ProviderNotRegisteredError,
    Registry,
    default_registry,
)


class FixedProvider(Provider):
    """Provider that remembers the config it was built from."""

    def __init__(self, config):
        self.config = config
        self.cell = new_cell("X1", sw=(0.0, 0.0), ne=(0.25, 0.25))

    def cell_size(self):
        return CellSize.CELL_50K

    def cell_for_bounds(self, extent, srid=4326):
        return self.cell

    def cell_for_lat_lng(self, lat, lng, srid=4326):
        return self.cell

    def cell_for_mdgid(self, mdgid):
        return self.cell


def fixed_init(config, registry):
    return FixedProvider(config)


class TestRegistration:
    """Tests for provider type registration."""

    def test_register(self):
        registry = Registry()
        registry.register("fixed", fixed_init)
        assert registry.registered() == ["fixed"]

    def test_register_twice_raises(self):
        registry = Registry()
        registry.register("fixed", fixed_init)
        with pytest.raises(ProviderAlreadyRegisteredError):
            registry.register("fixed", fixed_init)

    def test_unregister_runs_cleanup(self):
        calls = []
        registry = Registry()
        registry.register("fixed", fixed_init, cleanup=lambda: calls.append("cleanup"))
        registry.unregister("fixed")
        assert calls == ["cleanup"]
        assert registry.registered() == []

    def test_unregister_unknown_raises(self):
        with pytest.raises(ProviderNotRegisteredError):
            Registry().unregister("nope")

    def test_registered_is_sorted(self):
        registry = Registry()
        registry.register("zeta", fixed_init)
        registry.register("alpha", fixed_init)
        assert registry.registered() == ["alpha", "zeta"]

    def test_errors_are_grid_errors(self):
        assert issubclass(ProviderNotFoundError, GridError)
        assert issubclass(ProviderNotRegisteredError, GridError)


class TestProviders:
    """Tests for building and naming providers."""

    def test_provider_for(self):
        registry = Registry()
        registry.register("fixed", fixed_init)
        provider = registry.provider_for("fixed", {"a": 1})
        assert provider.config == {"a": 1}

    def test_provider_for_unknown_type(self):
        with pytest.raises(ProviderNotRegisteredError):
            Registry().provider_for("nope", {})

    def test_named_missing(self):
        with pytest.raises(ProviderNotFoundError):
            Registry().named("grid50k")

    def test_load_providers(self):
        registry = Registry()
        registry.register("fixed", fixed_init)
        loaded = registry.load_providers([
            {"name": "one", "type": "fixed"},
            {"name": "two", "type": "fixed", "extra": True},
        ])
        assert sorted(loaded) == ["one", "two"]
        assert registry.names() == ["one", "two"]
        assert registry.named("two").config["extra"] is True

    def test_later_providers_see_earlier_ones(self):
        seen = []

        def wrapping_init(config, registry):
            seen.append(registry.named(config["provider"]))
            return FixedProvider(config)

        registry = Registry()
        registry.register("fixed", fixed_init)
        registry.register("wrap", wrapping_init)
        registry.load_providers([
            {"name": "base", "type": "fixed"},
            {"name": "wrapped", "type": "wrap", "provider": "base"},
        ])
        assert seen == [registry.named("base")]

    def test_load_providers_missing_name(self):
        registry = Registry()
        registry.register("fixed", fixed_init)
        with pytest.raises(GridError):
            registry.load_providers([{"type": "fixed"}])

    def test_load_providers_missing_type(self):
        with pytest.raises(GridError):
            Registry().load_providers([{"name": "one"}])

    def test_cleanup_drops_named(self):
        calls = []
        registry = Registry()
        registry.register("fixed", fixed_init, cleanup=lambda: calls.append(1))
        registry.load_providers([{"name": "one", "type": "fixed"}])
        registry.cleanup()
        assert registry.names() == []
        assert calls == [1]


class TestDefaultRegistry:
    """Tests for the built-in provider types."""

    def test_builtin_types(self):
        assert default_registry().registered() == ["geojson", "grid5k"]

    def test_registries_are_independent(self):
        first = default_registry()
        second = default_registry()
        first.add_named("x", FixedProvider({}))
        assert second.names() == []
