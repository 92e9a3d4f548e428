import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from notes_annotator.core.bbox import Box, is_below_threshold
from notes_annotator.core.types import Point

logger = logging.getLogger(__name__)

MIN_STROKE_SIZE = 5.0  # px, in either axis


class InkTrail:
    """The visible red-pen path drawn on an annotation surface.

    `origin` is the surface's top-left corner in viewport coordinates.
    """

    def __init__(self, origin: Tuple[float, float] = (0.0, 0.0)):
        self.origin = Point(float(origin[0]), float(origin[1]))
        self.segments: List[Tuple[Point, Point]] = []
        self._pen: Optional[Point] = None

    @property
    def is_empty(self) -> bool:
        return self._pen is None and not self.segments

    def clear(self) -> None:
        self.segments.clear()
        self._pen = None

    def move_to(self, point: Point) -> None:
        self._pen = point

    def line_to(self, point: Point) -> None:
        if self._pen is not None:
            self.segments.append((self._pen, point))
        self._pen = point

    def to_viewport(self, box: Box) -> Box:
        return box.translate(self.origin.x, self.origin.y)


@dataclass
class Stroke:
    min_x: float
    min_y: float
    max_x: float
    max_y: float
    active: bool = True

    def include(self, point: Point) -> None:
        self.min_x = min(self.min_x, point.x)
        self.min_y = min(self.min_y, point.y)
        self.max_x = max(self.max_x, point.x)
        self.max_y = max(self.max_y, point.y)

    def box(self) -> Box:
        return Box(self.min_x, self.min_y, self.max_x, self.max_y)


class StrokeTracker:
    """Accumulates one continuous gesture into a running bounding box."""

    def __init__(
        self,
        trail: InkTrail,
        annotation_mode: Callable[[], bool],
        min_size: float = MIN_STROKE_SIZE,
    ):
        self.trail = trail
        self._annotation_mode = annotation_mode
        self.min_size = min_size
        self.stroke: Optional[Stroke] = None

    @property
    def active(self) -> bool:
        return self.stroke is not None and self.stroke.active

    def begin(self, point: Point) -> bool:
        if not self._annotation_mode() or self.active:
            return False
        self.stroke = Stroke(point.x, point.y, point.x, point.y)
        self.trail.clear()
        self.trail.move_to(point)
        return True

    def extend(self, point: Point) -> None:
        if not self.active:
            return
        self.stroke.include(point)
        self.trail.line_to(point)

    def end(self) -> Optional[Box]:
        """Finish the gesture; returns the surface-relative box or None for taps."""
        if not self.active:
            return None
        box = self.stroke.box()
        self.stroke = None
        self.trail.clear()
        if is_below_threshold(box, self.min_size):
            logger.debug(f"Discarding sub-threshold stroke {box.width:.1f}x{box.height:.1f}")
            return None
        return box

    def abandon(self) -> None:
        if self.active:
            logger.debug("Abandoning in-progress stroke")
        self.stroke = None
        self.trail.clear()
