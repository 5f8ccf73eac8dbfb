"""
Core Module for Grid Traffic Simulation

This module provides the simulation infrastructure shared by every component.

Components:
- Direction and axis enumerations
- Grid configuration and XML config parser
- Grid geometry provider
- Error taxonomy
- Vehicle motion contract
- Tick-driven simulation engine

The runnable driver lives in core.simulation and is imported from there,
since it depends on the traffic_models and routing packages.
"""

from .directions import (
    Axis,
    Direction,
    DIRECTIONS,
    NEIGHBOR_ORDER,
)

from .errors import (
    GridSimulationError,
    ConfigurationError,
    CapacityExceeded,
    LaneEmpty,
    RouteNotFound,
    InvalidDirection,
)

from .config import (
    GridConfig,
    GridConfigParser,
    load_config,
)

from .geometry import (
    GridGeometry,
    JunctionBox,
    LanePoint,
    Point,
    lane_offset,
)

from .vehicle import (
    Vehicle,
    VehiclePlan,
    VehicleState,
    build_vehicle_plan,
)

from .engine import (
    SimulationEngine,
)

__all__ = [
    'Axis',
    'Direction',
    'DIRECTIONS',
    'NEIGHBOR_ORDER',
    'GridSimulationError',
    'ConfigurationError',
    'CapacityExceeded',
    'LaneEmpty',
    'RouteNotFound',
    'InvalidDirection',
    'GridConfig',
    'GridConfigParser',
    'load_config',
    'GridGeometry',
    'JunctionBox',
    'LanePoint',
    'Point',
    'lane_offset',
    'Vehicle',
    'VehiclePlan',
    'VehicleState',
    'build_vehicle_plan',
    'SimulationEngine',
]
