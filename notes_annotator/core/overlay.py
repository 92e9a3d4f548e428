"""
Red-pen selection overlay for one rendered message bubble.

Pointer events arrive in surface coordinates (relative to the bubble). The
finished stroke box is translated to viewport coordinates and hit-tested
against the bubble's line registry, which is fetched fresh at gesture end.
"""

import enum
import logging
from typing import Callable, Iterable, Optional, Sequence, Tuple

from notes_annotator.core.bridge import SelectionBridge
from notes_annotator.core.resolver import Highlighter, resolve_selection
from notes_annotator.core.stroke import MIN_STROKE_SIZE, InkTrail, StrokeTracker
from notes_annotator.core.types import LineRegion, Point

logger = logging.getLogger(__name__)

RegionProvider = Callable[[], Optional[Sequence[LineRegion]]]


class OverlayState(enum.Enum):
    IDLE = "idle"
    ARMED = "armed"
    DRAWING = "drawing"
    RESOLVING = "resolving"


class AnnotationOverlay:
    def __init__(
        self,
        message_id: str,
        regions: RegionProvider,
        bridge: SelectionBridge,
        annotation_mode: Callable[[], bool],
        origin: Tuple[float, float] = (0.0, 0.0),
        min_size: float = MIN_STROKE_SIZE,
        min_overlap: float = 0.0,
        highlighter: Optional[Highlighter] = None,
    ):
        self.message_id = message_id
        self._regions = regions
        self.bridge = bridge
        self._annotation_mode = annotation_mode
        self.trail = InkTrail(origin)
        self.tracker = StrokeTracker(self.trail, annotation_mode, min_size)
        self.min_overlap = min_overlap
        self.highlighter = highlighter or Highlighter()
        self._resolving = False

    @property
    def state(self) -> OverlayState:
        if self._resolving:
            return OverlayState.RESOLVING
        if not self._annotation_mode():
            return OverlayState.IDLE
        if self.tracker.active:
            return OverlayState.DRAWING
        return OverlayState.ARMED

    def move_to(self, origin: Tuple[float, float]) -> None:
        """Re-anchor the surface after the bubble was re-laid out."""
        self.trail.origin = Point(float(origin[0]), float(origin[1]))

    # --- Pointer events ---

    def pointer_down(self, x: float, y: float) -> bool:
        return self.tracker.begin(Point(float(x), float(y)))

    def pointer_move(self, x: float, y: float) -> None:
        if not self.tracker.active:
            return
        if not self._annotation_mode():
            self.tracker.abandon()
            return
        self.tracker.extend(Point(float(x), float(y)))

    def pointer_up(self) -> Optional[str]:
        """End the gesture; returns the follow-up question when one was produced."""
        if not self.tracker.active:
            return None
        if not self._annotation_mode():
            self.tracker.abandon()
            return None
        box = self.tracker.end()
        if box is None:
            return None

        bounds = self.trail.to_viewport(box)
        self._resolving = True
        try:
            text = resolve_selection(bounds, self._regions(), self.min_overlap, self.highlighter)
            return self.bridge.emit(text)
        finally:
            self._resolving = False

    # leaving the surface with the pointer down ends the gesture
    pointer_leave = pointer_up

    def trace(self, points: Iterable[Sequence[float]]) -> Optional[str]:
        """Replay a whole gesture: down on the first point, move through the rest, up."""
        points = [Point(float(p[0]), float(p[1])) for p in points]
        if not points or not self.pointer_down(*points[0]):
            return None
        for point in points[1:]:
            self.pointer_move(*point)
        return self.pointer_up()

    def cancel(self) -> None:
        """Annotation mode was toggled; drop any half-drawn stroke."""
        self.tracker.abandon()

    def dispose(self) -> None:
        self.tracker.abandon()
        self.highlighter.clear()
