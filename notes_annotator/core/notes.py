"""
Teacher-notes model and layout.

Model replies are decided once, at ingestion, to be either structured notes
or plain text. The layout turns a message into an ordered registry of line
regions; the annotation overlay hit-tests against that registry.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from notes_annotator.core.bbox import Box
from notes_annotator.core.types import ChatMessage, LineRegion

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StructuredNotes:
    final_answer: str
    concept_content: str = ""
    has_concept: bool = False
    visual_prompt: Optional[str] = None

    def to_json(self) -> str:
        data = {
            "finalAnswer": self.final_answer,
            "conceptContent": self.concept_content,
            "hasConcept": self.has_concept,
        }
        if self.visual_prompt:
            data["visualPrompt"] = self.visual_prompt
        return json.dumps(data, ensure_ascii=False)


@dataclass(frozen=True)
class PlainText:
    text: str


Notes = Union[StructuredNotes, PlainText]


def parse_notes(raw: Optional[str]) -> Notes:
    """Decide once whether a reply is structured notes or plain text."""
    try:
        data = json.loads(raw or "")
    except (TypeError, ValueError):
        return PlainText(raw or "")
    if not isinstance(data, dict) or not isinstance(data.get("finalAnswer"), str):
        return PlainText(raw or "")
    visual_prompt = data.get("visualPrompt")
    return StructuredNotes(
        final_answer=data["finalAnswer"],
        concept_content=str(data.get("conceptContent") or ""),
        has_concept=data.get("hasConcept") is True,
        visual_prompt=visual_prompt.strip() if isinstance(visual_prompt, str) and visual_prompt.strip() else None,
    )


# --- Line classification ---

ANNOTATABLE_KINDS = frozenset({"notebook", "math", "heading"})


def classify_line(line: str) -> str:
    trimmed = line.strip()
    if not trimmed:
        return "blank"
    if trimmed.startswith("=") or "×" in trimmed or "÷" in trimmed:
        return "math"
    if (
        len(trimmed) < 40
        and not trimmed.endswith(".")
        and not trimmed.endswith(",")
        and not trimmed.startswith("•")
    ):
        return "heading"
    if trimmed.startswith("•"):
        return "bullet"
    return "notebook"


def render_text(notes: Notes, show_concept: bool = False) -> str:
    if isinstance(notes, PlainText):
        return notes.text
    text = notes.final_answer
    if notes.has_concept and show_concept:
        text += "\n\n--- Step-by-Step Board Work ---\n" + notes.concept_content
    return text


# --- Layout ---

LINE_HEIGHTS: Dict[str, float] = {
    "blank": 24.0,
    "notebook": 32.0,
    "math": 32.0,
    "heading": 40.0,
    "bullet": 36.0,
}
CHAR_WIDTH = 9.0
ANSWER_WIDTH = 624.0   # notes column minus the listen/logic button gutter
BULLET_INDENT = 16.0
CONCEPT_GAP = 96.0     # divider and "board work" label
CONCEPT_INDENT = 48.0  # left border plus padding of the board
IMAGE_HEIGHT = 512.0


@dataclass
class RenderedBubble:
    message_id: str
    regions: List[LineRegion] = field(default_factory=list)
    height: float = 0.0


class NotesLayout:
    """Deterministic line layout in surface (bubble-relative) coordinates."""

    def __init__(
        self,
        width: float = ANSWER_WIDTH,
        char_width: float = CHAR_WIDTH,
        line_heights: Optional[Dict[str, float]] = None,
    ):
        self.width = width
        self.char_width = char_width
        self.line_heights = dict(LINE_HEIGHTS)
        if line_heights:
            self.line_heights.update(line_heights)

    def _lay_out_lines(self, bubble: RenderedBubble, section: str, text: str, left: float, width: float) -> None:
        top = bubble.height
        for i, line in enumerate(text.split("\n")):
            kind = classify_line(line)
            height = self.line_heights[kind]
            if kind != "blank":
                indent = BULLET_INDENT if kind == "bullet" else 0.0
                x0 = left + indent
                x1 = x0 + min(width - indent, max(1, len(line.rstrip())) * self.char_width)
                bubble.regions.append({
                    "id": f"{bubble.message_id}:{section}:{i}",
                    "rect": Box(x0, top, x1, top + height),
                    "text": line,
                    "kind": kind,
                    "section": section,
                })
            top += height
        bubble.height = top

    def render(self, message: ChatMessage, notes: Optional[Notes], show_concept: bool = False) -> RenderedBubble:
        bubble = RenderedBubble(message["id"])
        for part in message["parts"]:
            if part.get("inline_data") or part.get("generated_image"):
                bubble.height += IMAGE_HEIGHT
            if "text" not in part or notes is None:
                continue
            if isinstance(notes, PlainText):
                self._lay_out_lines(bubble, "text", notes.text, 0.0, self.width)
                continue
            self._lay_out_lines(bubble, "answer", notes.final_answer, 0.0, self.width)
            if notes.has_concept and show_concept:
                bubble.height += CONCEPT_GAP
                self._lay_out_lines(
                    bubble, "concept", notes.concept_content, CONCEPT_INDENT, self.width - CONCEPT_INDENT
                )
        return bubble


def annotatable(regions: List[LineRegion]) -> List[LineRegion]:
    """The subset of a bubble's lines the red pen can select."""
    return [r for r in regions if r.get("kind") in ANNOTATABLE_KINDS]
