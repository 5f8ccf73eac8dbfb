"""
Grid Geometry

Pixel layout of the junction grid. The geometry provider hands each
junction its bounding box; junctions derive their lane points from it.

Layout:
- Cell (r, c) has its top-left corner at
  (origin_pad_x + c * cell_w, origin_pad_y + r * cell_h)
- A junction box of side junc_size is centred in its cell; the inner box
  is inset by junc_border and its edges are the stop lines.
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple

from .config import GridConfig
from .directions import Axis


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def distance_to(self, other: 'Point') -> float:
        return math.hypot(other.x - self.x, other.y - self.y)


@dataclass(frozen=True)
class JunctionBox:
    """Outer and inner edges of a junction box plus its centre [px]"""
    cx: float
    cy: float
    left: float
    right: float
    top: float
    bottom: float
    inner_left: float
    inner_right: float
    inner_top: float
    inner_bottom: float

    @property
    def center(self) -> Point:
        return Point(self.cx, self.cy)


@dataclass(frozen=True)
class LanePoint:
    """
    A canonical lane point at a junction edge

    Attributes:
        x, y: Position on the inner junction edge
        axis: Travel axis of the lane
        sign: +1 if travel increases the coordinate along the axis, else -1
        stop: Stop-line coordinate along the axis (approach points only)
    """
    x: float
    y: float
    axis: Axis
    sign: int
    stop: Optional[float] = None

    @property
    def point(self) -> Point:
        return Point(self.x, self.y)

    @property
    def lane_coord(self) -> float:
        """Coordinate perpendicular to travel (y for H lanes, x for V lanes)"""
        return self.y if self.axis == Axis.HORIZONTAL else self.x


def lane_offset(road_thick: float) -> int:
    """
    Distance of each lane centre from the road centreline

    A two-way road of thickness T carries one lane per direction, each
    centred T/4 from the centreline. Halves round up.
    """
    return int(math.floor(road_thick / 4 + 0.5))


class GridGeometry:
    """
    Geometry provider for a rows x cols grid

    Usage:
        geom = GridGeometry(config, rows=3, cols=4)
        box = geom.junction_box_at(1, 2)
    """

    def __init__(self, config: GridConfig, rows: int, cols: int):
        if rows <= 0 or cols <= 0:
            raise ValueError(f"Grid must have positive size, got {rows}x{cols}")
        self.config = config
        self.rows = rows
        self.cols = cols
        self.origin_x = config.origin_pad_x
        self.origin_y = config.origin_pad_y

    def world_size(self) -> Tuple[float, float]:
        """(width, height) of the whole world [px]"""
        return (
            self.origin_x * 2 + self.cols * self.config.cell_w,
            self.origin_y * 2 + self.rows * self.config.cell_h,
        )

    def cell_top_left(self, r: int, c: int) -> Point:
        return Point(
            self.origin_x + c * self.config.cell_w,
            self.origin_y + r * self.config.cell_h,
        )

    def cell_center(self, r: int, c: int) -> Point:
        tl = self.cell_top_left(r, c)
        return Point(tl.x + self.config.cell_w / 2, tl.y + self.config.cell_h / 2)

    def junction_box_at(self, r: int, c: int) -> JunctionBox:
        center = self.cell_center(r, c)
        half = self.config.junc_size / 2
        inner_half = half - self.config.junc_border

        return JunctionBox(
            cx=center.x,
            cy=center.y,
            left=center.x - half,
            right=center.x + half,
            top=center.y - half,
            bottom=center.y + half,
            inner_left=center.x - inner_half,
            inner_right=center.x + inner_half,
            inner_top=center.y - inner_half,
            inner_bottom=center.y + inner_half,
        )

    def contains(self, r: int, c: int) -> bool:
        return 0 <= r < self.rows and 0 <= c < self.cols
