from typing import Iterable, NamedTuple, Sequence

# --- Coordinate helpers ---

class Box(NamedTuple):
    """Axis-aligned rectangle, origin top-left, y down."""
    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    def translate(self, dx: float, dy: float) -> "Box":
        return Box(self.left + dx, self.top + dy, self.right + dx, self.bottom + dy)


def box_from_list(values: Sequence[float]) -> Box:
    """Build a Box from `[x0, top, x1, bottom]`, normalising swapped corners."""
    x0, top, x1, bottom = (float(v) for v in values[:4])
    return Box(min(x0, x1), min(top, bottom), max(x0, x1), max(top, bottom))


def union_boxes(boxes: Iterable[Box]) -> Box:
    boxes = list(boxes)
    x0 = min(b.left for b in boxes)
    y0 = min(b.top for b in boxes)
    x1 = max(b.right for b in boxes)
    y1 = max(b.bottom for b in boxes)
    return Box(x0, y0, x1, y1)


def is_below_threshold(box: Box, min_size: float) -> bool:
    """A box is a tap, not a stroke, when it is small in BOTH axes."""
    return box.width < min_size and box.height < min_size


# --- Intersection ---

def overlaps(element: Box, selection: Box) -> bool:
    # touching edges count as overlap
    return not (
        element.right < selection.left
        or element.left > selection.right
        or element.bottom < selection.top
        or element.top > selection.bottom
    )


def intersection_area(a: Box, b: Box) -> float:
    w = min(a.right, b.right) - max(a.left, b.left)
    h = min(a.bottom, b.bottom) - max(a.top, b.top)
    if w <= 0 or h <= 0:
        return 0.0
    return w * h


def overlap_fraction(element: Box, selection: Box) -> float:
    """Share of the element's own area covered by the selection (0.0 - 1.0).

    Degenerate (zero-area) elements count as fully covered when they touch the
    selection at all.
    """
    if not overlaps(element, selection):
        return 0.0
    area = element.width * element.height
    if area <= 0:
        return 1.0
    return min(1.0, intersection_area(element, selection) / area)
