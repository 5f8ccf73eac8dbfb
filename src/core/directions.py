"""
Compass Directions and Travel Axes

Every per-direction structure in the simulation (lanes, exit flags, lane
points) is indexed by the closed `Direction` enumeration, so lookups never
need a presence check.

Conventions:
- An *approach* direction is the side a vehicle arrives from
  (approach W means the vehicle travels east).
- A *move* / *exit* direction is the side a vehicle leaves towards.
- Rows grow southwards, columns grow eastwards.
"""

from enum import Enum
from typing import Tuple, Union

from .errors import InvalidDirection


class Axis(Enum):
    """Traffic axis sharing one green/red state"""
    HORIZONTAL = "H"    # E/W travel
    VERTICAL = "V"      # N/S travel

    @classmethod
    def parse(cls, token: Union['Axis', str]) -> 'Axis':
        if isinstance(token, Axis):
            return token
        for axis in cls:
            if token in (axis.value, axis.name):
                return axis
        raise ValueError(f"Unknown axis: {token!r}. Available: H, V")


class Direction(Enum):
    """The four compass directions"""
    N = "N"
    E = "E"
    S = "S"
    W = "W"

    @classmethod
    def parse(cls, token: Union['Direction', str]) -> 'Direction':
        """Convert a token into a Direction, failing fast on anything else"""
        if isinstance(token, Direction):
            return token
        if isinstance(token, str):
            try:
                return cls(token.strip().upper())
            except ValueError:
                pass
        raise InvalidDirection(f"Unknown direction: {token!r}. Available: N, E, S, W")

    @property
    def opposite(self) -> 'Direction':
        return _OPPOSITE[self]

    @property
    def delta(self) -> Tuple[int, int]:
        """(d_row, d_col) grid offset of the neighbour in this direction"""
        return _DELTAS[self]

    @property
    def axis(self) -> Axis:
        if self in (Direction.E, Direction.W):
            return Axis.HORIZONTAL
        return Axis.VERTICAL


_OPPOSITE = {
    Direction.N: Direction.S,
    Direction.S: Direction.N,
    Direction.E: Direction.W,
    Direction.W: Direction.E,
}

_DELTAS = {
    Direction.N: (-1, 0),
    Direction.S: (1, 0),
    Direction.W: (0, -1),
    Direction.E: (0, 1),
}

# Fixed neighbour-visit order for breadth-first search; route tie-breaks
# depend on it.
NEIGHBOR_ORDER = (Direction.N, Direction.S, Direction.W, Direction.E)

# Fixed iteration order for per-direction structures
DIRECTIONS = (Direction.N, Direction.E, Direction.S, Direction.W)
