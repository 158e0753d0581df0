"""Tests for component configuration."""

import pytest

from tabcluster.config import (BoundaryConfig, ConnectionConfig, ForceConfig, ResolverConfig,
                               ViewModeConfig, VisualizationConfig)
from tabcluster.exceptions import ConfigError


class TestDefaults:

    def test_documented_defaults(self):
        config = VisualizationConfig()
        assert config.resolver.remove_www is True
        assert config.resolver.group_subdomains is False
        assert config.grouping.min_cluster_size == 1
        assert config.connections.min_connection_strength == 0.1
        assert (config.connections.frequency_weight, config.connections.recency_weight) == (0.6, 0.4)
        assert config.boundaries.padding == 25
        assert config.boundaries.tension == 0.3
        assert config.force.cluster_strength == 0.1
        assert config.view_mode.default_mode == "hierarchy"
        assert config.view_mode.transition_duration == 1000


class TestFromDict:

    def test_camel_case_keys(self):
        config = ResolverConfig.from_dict({"removeWww": False, "groupSubdomains": True})
        assert config.remove_www is False
        assert config.group_subdomains is True

    def test_snake_case_keys(self):
        assert ConnectionConfig.from_dict({"recency_window_days": 7}).recency_window_days == 7

    def test_unknown_key(self):
        with pytest.raises(ConfigError):
            BoundaryConfig.from_dict({"cornerRadius": 3})

    def test_none(self):
        assert ForceConfig.from_dict(None) == ForceConfig()

    def test_flat_routing(self):
        config = VisualizationConfig.from_dict({
            "removeWww": False,
            "padding": 10,
            "clusterStrength": 0.5,
            "transitionDuration": 400,
        })
        assert config.resolver.remove_www is False
        assert config.boundaries.padding == 10
        assert config.force.cluster_strength == 0.5
        assert config.view_mode.transition_duration == 400

    def test_nested_sections(self):
        config = VisualizationConfig.from_dict({"boundaries": {"tension": 0.5}, "viewMode": {"preserveZoom": False}})
        assert config.boundaries.tension == 0.5
        assert config.view_mode.preserve_zoom is False

    def test_flat_unknown_key(self):
        with pytest.raises(ConfigError):
            VisualizationConfig.from_dict({"animationCurve": "ease"})


class TestValidation:

    def test_tension_range(self):
        with pytest.raises(ConfigError):
            BoundaryConfig(tension=1.5)

    def test_negative_duration(self):
        with pytest.raises(ConfigError):
            ViewModeConfig(transition_duration=-1)

    def test_recency_window(self):
        with pytest.raises(ConfigError):
            ConnectionConfig(recency_window_days=0)

    def test_config_error_is_value_error(self):
        assert issubclass(ConfigError, ValueError)


class TestReplace:

    def test_returns_copy(self):
        original = BoundaryConfig()
        changed = original.replace(padding=5, smoothing=False)
        assert original.padding == 25
        assert (changed.padding, changed.smoothing) == (5, False)

    def test_unknown(self):
        with pytest.raises(ConfigError):
            BoundaryConfig().replace(colour="red")

    def test_visualization_replace_routes_keys(self):
        original = VisualizationConfig()
        changed = original.replace(transitionDuration=200, circle_segments=6)
        assert changed.view_mode.transition_duration == 200
        assert changed.boundaries.circle_segments == 6
        assert changed.force is original.force
        assert original.view_mode.transition_duration == 1000

    def test_visualization_replace_unknown(self):
        with pytest.raises(ConfigError):
            VisualizationConfig().replace(padding=3, cornerRadius=2)


class TestRoute:

    def test_splits_by_owner(self):
        per_section = VisualizationConfig.route({"minClusterSize": 2, "padding": 4})
        assert per_section["grouping"] == {"min_cluster_size": 2}
        assert per_section["boundaries"] == {"padding": 4}
        assert per_section["force"] == {}

    def test_nested_section(self):
        assert VisualizationConfig.route({"force": {"chargeStrength": -10}})["force"] == {"chargeStrength": -10}
