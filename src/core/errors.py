"""
Error Taxonomy for the Grid Traffic Simulation

Only malformed configuration and programmer errors are raised loudly.
Ordinary traffic conditions (a full lane, no route between two boundary
junctions, a red light) are states, not faults: the engine and the driver
catch the recoverable errors below and carry on with the next tick.

- ConfigurationError: non-positive duration, capacity or size (fatal)
- CapacityExceeded:   lane full at enqueue time (recoverable)
- LaneEmpty:          dequeue from an empty lane (recoverable)
- RouteNotFound:      no path between the chosen junctions (recoverable)
- InvalidDirection:   unrecognised direction token (programmer error)
"""


class GridSimulationError(Exception):
    """Base class for all simulation errors"""


class ConfigurationError(GridSimulationError, ValueError):
    """A configuration value was rejected; the previous value is kept"""


class CapacityExceeded(GridSimulationError):
    """A lane is at capacity and cannot accept another vehicle"""

    def __init__(self, lane_id: str, capacity: int, message: str = ""):
        self.lane_id = lane_id
        self.capacity = capacity
        super().__init__(message or f"Lane {lane_id} is full (capacity={capacity})")


class LaneEmpty(GridSimulationError):
    """Dequeue was requested from a lane with no queued vehicles"""


class RouteNotFound(GridSimulationError):
    """No route could be planned between boundary junctions"""


class InvalidDirection(GridSimulationError, ValueError):
    """A direction token outside N/E/S/W reached a lookup"""
