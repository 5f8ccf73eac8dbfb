"""
Grid Simulation Configuration

This module holds the configuration object consumed by every component of
the simulation and a parser for XML configuration files.

Configuration covers:
- Grid layout (cell size, padding, junction box size)
- Road and lane geometry (road thickness, stop-line thickness)
- Signal timing (green / yellow / all-red durations)
- Vehicle motion (length, speed, gap, spawn padding and cooldown)
- Lane capacity
- Emission constants used for trip statistics

Configuration files use sections whose children carry a ``value``
attribute, e.g.::

    <gridsim>
        <timing>
            <green-ms value="4000"/>
            <allred-ms value="1000"/>
        </timing>
        <lanes>
            <lane-capacity value="8"/>
        </lanes>
    </gridsim>
"""

import xml.etree.ElementTree as ET
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping

from .errors import ConfigurationError


# Fields that must be strictly positive
_POSITIVE_FIELDS = (
    'cell_w', 'cell_h', 'road_thick', 'car_len', 'car_speed', 'junc_size',
    'green_ms', 'yellow_ms', 'allred_ms', 'lane_capacity', 'spawn_pad',
    'frame_ms', 'px_per_m',
)

# Fields that must not be negative
_NON_NEGATIVE_FIELDS = (
    'car_gap', 'junc_border', 'stopline_thick', 'spawn_cooldown_ms', 'eps',
    'origin_pad_x', 'origin_pad_y', 'co2_per_km', 'idle_gal_per_hr',
    'co2_g_per_gal',
)


@dataclass(frozen=True)
class GridConfig:
    """Configuration shared by geometry, junctions, signals and vehicles"""
    # Grid layout [px]
    cell_w: float = 420
    cell_h: float = 320
    origin_pad_x: float = 60
    origin_pad_y: float = 60

    # Roads and junction boxes [px]
    road_thick: float = 120
    junc_size: float = 110
    junc_border: float = 2
    stopline_thick: float = 2

    # Vehicles
    car_len: float = 26                   # [px]
    car_speed: float = 1.4                # [px/frame]
    car_gap: float = 10                   # Bumper-to-bumper gap [px]
    spawn_pad: float = 260                # Spawn/despawn distance outside the grid [px]
    spawn_cooldown_ms: float = 450        # Minimum sim time between spawns [ms]
    eps: float = 0.5                      # Stop-line crossing tolerance [px]

    # Signal timing [ms]
    green_ms: float = 3000
    yellow_ms: float = 400
    allred_ms: float = 3000

    # Lanes
    lane_capacity: int = 10               # Max vehicles per approach lane
    exits_enabled: bool = True            # Initial state of every exit flag

    # Time base
    frame_ms: float = 1000.0 / 60.0       # Sim ms per motion frame

    # Emission estimates for trip statistics
    px_per_m: float = 10.0
    co2_per_km: float = 249.0             # [g/km] while moving
    idle_gal_per_hr: float = 0.35         # Fuel burnt idling [gal/hr]
    co2_g_per_gal: float = 8887.0

    def __post_init__(self):
        for name in _POSITIVE_FIELDS:
            if getattr(self, name) <= 0:
                raise ConfigurationError(
                    f"{name.upper()} must be positive, got {getattr(self, name)}")
        for name in _NON_NEGATIVE_FIELDS:
            if getattr(self, name) < 0:
                raise ConfigurationError(
                    f"{name.upper()} must not be negative, got {getattr(self, name)}")
        if isinstance(self.lane_capacity, bool) or int(self.lane_capacity) != self.lane_capacity:
            raise ConfigurationError(
                f"LANE_CAPACITY must be an integer, got {self.lane_capacity}")
        if self.junc_border * 2 >= self.junc_size:
            raise ConfigurationError("JUNC_BORDER leaves no inner junction box")

    @property
    def vehicle_spacing(self) -> float:
        """Front-to-front distance between queued vehicles [px]"""
        return self.car_len + self.car_gap

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> 'GridConfig':
        """
        Build a configuration from a mapping of overrides

        Accepts snake_case field names or the upper-case constant names
        (``ROAD_THICK``, ``GREEN_MS``, ...).

        Raises:
            ConfigurationError: unknown key or invalid value
        """
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in values.items():
            name = key.lower()
            if name not in known:
                raise ConfigurationError(f"Unknown configuration key: {key}")
            kwargs[name] = value
        return cls(**kwargs)

    def with_overrides(self, **overrides) -> 'GridConfig':
        """Copy of this configuration with some values replaced"""
        return replace(self, **overrides)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name.upper(): getattr(self, f.name) for f in fields(self)}


class GridConfigParser:
    """
    Parser for XML grid configuration files

    Section names are free-form; every element with a ``value`` attribute
    whose tag (dashes read as underscores) names a configuration field is
    applied. Values that fail to parse keep their default.

    Usage:
        parser = GridConfigParser()
        config = parser.parse("grid.xml")
    """

    def parse(self, filepath: str) -> GridConfig:
        """Parse a configuration file and return the configuration"""
        tree = ET.parse(filepath)
        return self.parse_element(tree.getroot())

    def parse_string(self, text: str) -> GridConfig:
        return self.parse_element(ET.fromstring(text))

    def parse_element(self, root: ET.Element) -> GridConfig:
        defaults = GridConfig()
        field_types = {f.name: f.type for f in fields(GridConfig)}
        overrides: Dict[str, Any] = {}

        for elem in root.iter():
            name = elem.tag.replace('-', '_').lower()
            if name not in field_types:
                continue
            raw = elem.get("value")
            if raw is None:
                continue
            default = getattr(defaults, name)
            field_type = field_types[name]
            if field_type is bool:
                overrides[name] = self._get_bool(raw, default)
            elif field_type is int:
                overrides[name] = int(self._get_value(raw, default))
            else:
                overrides[name] = self._get_value(raw, default)

        return GridConfig(**overrides)

    def _get_value(self, raw: str, default: float) -> float:
        """Parse a float, falling back to the default"""
        try:
            return float(raw)
        except ValueError:
            return default

    def _get_bool(self, raw: str, default: bool) -> bool:
        val = raw.strip().lower()
        if val in ("true", "1", "yes"):
            return True
        elif val in ("false", "0", "no"):
            return False
        return default


def load_config(filepath: str) -> GridConfig:
    """
    Convenience function to load a configuration file

    Args:
        filepath: Path to the XML configuration file

    Returns:
        GridConfig instance
    """
    return GridConfigParser().parse(filepath)
