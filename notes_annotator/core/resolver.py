import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Tuple

from notes_annotator.core.bbox import Box, overlap_fraction, overlaps
from notes_annotator.core.types import LineRegion

logger = logging.getLogger(__name__)

HIGHLIGHT_SECONDS = 0.8

# schedule(delay_seconds, callback) -> handle with .cancel()
Scheduler = Callable[[float, Callable[[], None]], Any]


def timer_scheduler(delay: float, callback: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


class Highlighter:
    """Brief visual feedback on matched lines.

    Each element has its own revert timer keyed by element id; flashing an
    element that is still lit restarts its timer.
    """

    def __init__(self, duration: float = HIGHLIGHT_SECONDS, schedule: Optional[Scheduler] = None):
        self.duration = duration
        self._schedule = schedule or timer_scheduler
        self._timers: Dict[str, Tuple[object, Any]] = {}
        self._lock = threading.Lock()

    def flash(self, element_id: str) -> None:
        token = object()
        with self._lock:
            previous = self._timers.pop(element_id, None)
            if previous is not None:
                previous[1].cancel()
            handle = self._schedule(self.duration, lambda: self._revert(element_id, token))
            self._timers[element_id] = (token, handle)

    def _revert(self, element_id: str, token: object) -> None:
        with self._lock:
            current = self._timers.get(element_id)
            # a late timer from an earlier flash must not end a newer one
            if current is not None and current[0] is token:
                del self._timers[element_id]

    def is_highlighted(self, element_id: str) -> bool:
        with self._lock:
            return element_id in self._timers

    def highlighted(self) -> Set[str]:
        with self._lock:
            return set(self._timers)

    def clear(self) -> None:
        with self._lock:
            for _, handle in self._timers.values():
                handle.cancel()
            self._timers.clear()


# --- Hit testing ---

def _region_box(region: LineRegion) -> Box:
    rect = region["rect"]
    return rect if isinstance(rect, Box) else Box(*rect)


def find_overlapping(
    bounds: Box,
    regions: Optional[Sequence[LineRegion]],
    min_overlap: float = 0.0,
) -> List[LineRegion]:
    """Regions intersecting `bounds`, in registry (document) order.

    With `min_overlap` > 0 a region must also have at least that fraction of
    its own area inside the selection.
    """
    if not regions:
        return []
    hits: List[LineRegion] = []
    for region in regions:
        rect = _region_box(region)
        if not overlaps(rect, bounds):
            continue
        if min_overlap > 0 and overlap_fraction(rect, bounds) < min_overlap:
            continue
        hits.append(region)
    return hits


def resolve_selection(
    bounds: Box,
    regions: Optional[Sequence[LineRegion]],
    min_overlap: float = 0.0,
    highlighter: Optional[Highlighter] = None,
) -> Optional[str]:
    """Text under a finished selection box, or None when nothing was hit."""
    fragments: List[str] = []
    for region in find_overlapping(bounds, regions, min_overlap):
        content = (region.get("text") or "").strip()
        if not content:
            continue
        fragments.append(content)
        if highlighter is not None:
            highlighter.flash(region["id"])
    if not fragments:
        logger.debug(f"No text under selection {tuple(bounds)}")
        return None
    return " ".join(fragments)
