"""
Configuration for the clustering pipeline and the view-mode controller.

Every component takes its own dataclass. Hosts usually hand over a flat
options mapping with camelCase keys (``removeWww``, ``minClusterSize``...);
``from_dict`` accepts either that spelling or the field name and rejects
anything it does not recognize.
"""

import re
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Tuple

from .exceptions import ConfigError


def snake_case(key: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


class _FromDict:
    """Mixin providing strict construction from an options mapping"""

    @classmethod
    def field_names(cls):
        return {f.name for f in fields(cls)}

    @classmethod
    def from_dict(cls, options: Mapping[str, Any] = None):
        """
        Build a config from a mapping of options.

        Args:
            options: Mapping of option name (snake_case or camelCase) -> value

        Returns:
            Config instance with defaults for every missing option

        Raises:
            ConfigError: if a key is not an option of this component
        """
        options = options or {}
        known = cls.field_names()
        kwargs = {}
        for key, value in options.items():
            name = snake_case(key)
            if name not in known:
                raise ConfigError(f"{cls.__name__}: unknown option {key!r}")
            kwargs[name] = value
        return cls(**kwargs)

    def replace(self, **changes):
        """Return a copy with the given options changed"""
        merged = {f.name: getattr(self, f.name) for f in fields(self)}
        for key, value in changes.items():
            name = snake_case(key)
            if name not in merged:
                raise ConfigError(f"{type(self).__name__}: unknown option {key!r}")
            merged[name] = value
        return type(self)(**merged)


@dataclass(frozen=True)
class ResolverConfig(_FromDict):
    """Domain resolution options"""
    remove_www: bool = True
    group_subdomains: bool = False
    fallback: str = "unknown"
    internal_schemes: Tuple[str, ...] = ("chrome", "chrome-extension")


@dataclass(frozen=True)
class GroupingConfig(_FromDict):
    """Domain grouping options"""
    min_cluster_size: int = 1

    def __post_init__(self):
        if self.min_cluster_size < 1:
            raise ConfigError("min_cluster_size must be >= 1")


@dataclass(frozen=True)
class ConnectionConfig(_FromDict):
    """Domain connection graph options"""
    include_intra_domain: bool = False
    weight_by_frequency: bool = True
    weight_by_recency: bool = True
    frequency_weight: float = 0.6
    recency_weight: float = 0.4
    min_connection_strength: float = 0.1
    recency_window_days: float = 30.0

    def __post_init__(self):
        if self.recency_window_days <= 0:
            raise ConfigError("recency_window_days must be positive")


@dataclass(frozen=True)
class BoundaryConfig(_FromDict):
    """Cluster outline geometry options"""
    padding: float = 25.0
    smoothing: bool = True
    tension: float = 0.3
    circle_segments: int = 12

    def __post_init__(self):
        if not 0.0 <= self.tension <= 1.0:
            raise ConfigError("tension must be within [0, 1]")
        if self.circle_segments < 3:
            raise ConfigError("circle_segments must be >= 3")


@dataclass(frozen=True)
class ForceConfig(_FromDict):
    """Cluster force and simulation options"""
    cluster_strength: float = 0.1
    enable_clustering: bool = True
    charge_strength: float = -300.0
    link_strength: float = 0.3
    link_distance: float = 50.0
    center_strength: float = 0.1
    collision_radius: float = 30.0
    velocity_decay: float = 0.4
    alpha_decay: float = 0.0228
    alpha_min: float = 0.001
    width: float = 960.0
    height: float = 600.0
    show_domain_boundaries: bool = True


@dataclass(frozen=True)
class ViewModeConfig(_FromDict):
    """Mode-switch behaviour"""
    default_mode: str = "hierarchy"
    transition_duration: int = 1000  # ms
    preserve_zoom: bool = True
    preserve_selection: bool = True
    transition_timeout: int = 0  # ms, 0 disables the guard

    def __post_init__(self):
        if self.transition_duration < 0:
            raise ConfigError("transition_duration must be >= 0")
        if self.transition_timeout < 0:
            raise ConfigError("transition_timeout must be >= 0")


_SECTIONS = {
    "resolver": ResolverConfig,
    "grouping": GroupingConfig,
    "connections": ConnectionConfig,
    "boundaries": BoundaryConfig,
    "force": ForceConfig,
    "view_mode": ViewModeConfig,
}


@dataclass(frozen=True)
class VisualizationConfig:
    """All component configs for one visualization session"""
    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    grouping: GroupingConfig = field(default_factory=GroupingConfig)
    connections: ConnectionConfig = field(default_factory=ConnectionConfig)
    boundaries: BoundaryConfig = field(default_factory=BoundaryConfig)
    force: ForceConfig = field(default_factory=ForceConfig)
    view_mode: ViewModeConfig = field(default_factory=ViewModeConfig)

    @staticmethod
    def route(options: Mapping[str, Any] = None) -> Dict[str, Dict[str, Any]]:
        """
        Split a flat options mapping by owning component.

        Each key must belong to exactly one component. Nested mappings
        keyed by section name (``{"boundaries": {"padding": 10}}``) are
        accepted too.

        Raises:
            ConfigError: if no component owns a key
        """
        per_section: Dict[str, Dict[str, Any]] = {name: {} for name in _SECTIONS}
        for key, value in (options or {}).items():
            name = snake_case(key)
            if name in _SECTIONS and isinstance(value, Mapping):
                per_section[name].update(value)
                continue
            owners = [s for s, c in _SECTIONS.items() if name in c.field_names()]
            if not owners:
                raise ConfigError(f"unknown option {key!r}")
            per_section[owners[0]][name] = value
        return per_section

    @classmethod
    def from_dict(cls, options: Mapping[str, Any] = None) -> "VisualizationConfig":
        """Build every component config from one flat options mapping"""
        per_section = cls.route(options)
        return cls(**{
            name: config_cls.from_dict(per_section[name])
            for name, config_cls in _SECTIONS.items()
        })

    def replace(self, **changes) -> "VisualizationConfig":
        """Return a copy with the given options changed in their components"""
        per_section = self.route(changes)
        return type(self)(**{
            name: getattr(self, name).replace(**per_section[name]) if per_section[name] else getattr(self, name)
            for name in _SECTIONS
        })
