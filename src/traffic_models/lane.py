"""
Approach Lane Queue Model

A Lane is the single-file road stretch approaching one side of a junction.
It behaves as a capacity-bounded FIFO queue:

- A vehicle joins the lane (enqueue) when it spawns onto it or when it
  crosses the stop line of the upstream junction.
- It leaves the lane (dequeue) when it crosses this junction's stop line.
  Only the front vehicle may leave.

Occupancy accounting:
---------------------
    occupancy     = N / capacity
    average wait  = (1/N) * sum(t_now - t_enqueue)      (0 when empty)

Queue length never exceeds capacity; an enqueue on a full lane raises
CapacityExceeded and leaves the queue untouched. Lane geometry (entry and
exit points, axis, sign) is fixed at construction.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional

from core.directions import Axis, Direction
from core.errors import CapacityExceeded, ConfigurationError, LaneEmpty
from core.geometry import LanePoint, Point


@dataclass
class QueuedVehicle:
    """A vehicle reference held in a lane queue"""
    vehicle: Any
    enqueued_at: float          # Sim time of arrival [ms]


class Lane:
    """
    Capacity-bounded FIFO queue serving one approach of one junction

    Attributes:
        lane_id: Unique id, "<row>,<col>:<approach>"
        junction_id: (row, col) of the owning junction
        approach: Side vehicles arrive from
        axis / sign: Travel axis and direction along it
        entry_point: Where the lane meets the stop line
        exit_point: Where straight-through traffic leaves the junction
        capacity: Maximum number of queued vehicles
    """

    def __init__(self,
                 junction_id,
                 approach: Direction,
                 entry: LanePoint,
                 exit_point: Point,
                 capacity: int = 10):
        if capacity is None or capacity <= 0:
            raise ConfigurationError(f"Lane capacity must be positive, got {capacity}")

        self.junction_id = junction_id
        self.approach = Direction.parse(approach)
        self.lane_id = f"{junction_id[0]},{junction_id[1]}:{self.approach.value}"
        self.axis: Axis = entry.axis
        self.sign: int = entry.sign
        self.lane_coord: float = entry.lane_coord
        self.stop: float = entry.stop
        self.entry_point = entry.point
        self.exit_point = exit_point
        self.capacity = int(capacity)

        self._queue: List[QueuedVehicle] = []

        # Statistics
        self.total_served = 0
        self.cumulative_wait_ms = 0.0

    # -------------------------------------------------------------------------
    # Queue operations
    # -------------------------------------------------------------------------

    def enqueue(self, vehicle: Any, at_time: float) -> None:
        """
        Append a vehicle at the tail

        Raises:
            CapacityExceeded: the lane is full
        """
        if self.is_full():
            raise CapacityExceeded(self.lane_id, self.capacity)
        self._queue.append(QueuedVehicle(vehicle=vehicle, enqueued_at=at_time))

    def dequeue_front(self, at_time: Optional[float] = None) -> Any:
        """
        Remove and return the earliest-enqueued vehicle

        Args:
            at_time: Sim time of departure, used for wait statistics

        Raises:
            LaneEmpty: no vehicle is queued
        """
        if not self._queue:
            raise LaneEmpty(f"Lane {self.lane_id} is empty")
        entry = self._queue.pop(0)
        self.total_served += 1
        if at_time is not None:
            self.cumulative_wait_ms += max(0.0, at_time - entry.enqueued_at)
        return entry.vehicle

    def remove(self, vehicle: Any) -> bool:
        """Drop a vehicle from anywhere in the queue (disposal, not service)"""
        for i, entry in enumerate(self._queue):
            if entry.vehicle is vehicle:
                del self._queue[i]
                return True
        return False

    def front(self) -> Optional[Any]:
        return self._queue[0].vehicle if self._queue else None

    def tail(self) -> Optional[Any]:
        return self._queue[-1].vehicle if self._queue else None

    def is_front(self, vehicle: Any) -> bool:
        return bool(self._queue) and self._queue[0].vehicle is vehicle

    def vehicle_ahead_of(self, vehicle: Any) -> Optional[Any]:
        """The vehicle queued immediately before `vehicle` (None if front)"""
        for i, entry in enumerate(self._queue):
            if entry.vehicle is vehicle:
                return self._queue[i - 1].vehicle if i > 0 else None
        raise ValueError(f"Vehicle is not queued in lane {self.lane_id}")

    def enqueue_time_of(self, vehicle: Any) -> Optional[float]:
        for entry in self._queue:
            if entry.vehicle is vehicle:
                return entry.enqueued_at
        return None

    def vehicles(self) -> List[Any]:
        """Queued vehicles, front first"""
        return [entry.vehicle for entry in self._queue]

    def __contains__(self, vehicle: Any) -> bool:
        return any(entry.vehicle is vehicle for entry in self._queue)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.vehicles())

    def __len__(self) -> int:
        return len(self._queue)

    # -------------------------------------------------------------------------
    # Occupancy
    # -------------------------------------------------------------------------

    def is_full(self) -> bool:
        return len(self._queue) >= self.capacity

    def get_queue_length(self) -> int:
        return len(self._queue)

    def get_occupancy_rate(self) -> float:
        """Fraction of capacity in use (0.0 to 1.0)"""
        return len(self._queue) / self.capacity

    def get_average_waiting_time(self, current_time: float) -> float:
        """Mean time the queued vehicles have spent in this lane [ms]"""
        if not self._queue:
            return 0.0
        total = sum(max(0.0, current_time - e.enqueued_at) for e in self._queue)
        return total / len(self._queue)

    def get_average_served_wait(self) -> float:
        """Mean time in lane of vehicles already served [ms]"""
        if self.total_served > 0:
            return self.cumulative_wait_ms / self.total_served
        return 0.0

    def get_state(self, current_time: float) -> Dict[str, Any]:
        return {
            'id': self.lane_id,
            'approach': self.approach.value,
            'axis': self.axis.value,
            'sign': self.sign,
            'vehicle_count': len(self._queue),
            'capacity': self.capacity,
            'occupancy_rate': self.get_occupancy_rate(),
            'is_full': self.is_full(),
            'average_wait_ms': self.get_average_waiting_time(current_time),
            'total_served': self.total_served,
            'average_served_wait_ms': self.get_average_served_wait(),
        }

    def reset_metrics(self) -> None:
        self.total_served = 0
        self.cumulative_wait_ms = 0.0
