"""
Conversation controller.

Owns the message list, the pending input, the red-pen mode flag and one
annotation overlay per rendered model bubble. Model replies are parsed into
notes once, when they arrive.
"""

import datetime as dt
import logging
import uuid
from typing import Dict, List, Optional, Tuple

from notes_annotator.core.bridge import SelectionBridge
from notes_annotator.core.composer import Composer
from notes_annotator.core.message_ref import parse_message_ref
from notes_annotator.core.notes import (
    Notes,
    NotesLayout,
    PlainText,
    RenderedBubble,
    StructuredNotes,
    annotatable,
    parse_notes,
)
from notes_annotator.core.overlay import AnnotationOverlay
from notes_annotator.core.prompts import CONNECTION_ERROR, IMAGE_ONLY_PROMPT, WELCOME
from notes_annotator.core.resolver import Highlighter, Scheduler
from notes_annotator.core.types import ROLE_MODEL, ROLE_USER, ChatMessage, InlineData, LineRegion, MessagePart

logger = logging.getLogger(__name__)

HEADER_HEIGHT = 80.0     # fixed top bar
PAGE_MARGIN = 16.0
MESSAGE_SPACING = 64.0


def _now_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


class ConversationController:
    def __init__(
        self,
        teacher,
        layout: Optional[NotesLayout] = None,
        min_overlap: float = 0.0,
        schedule: Optional[Scheduler] = None,
    ):
        self.teacher = teacher
        self.layout = layout or NotesLayout()
        self.min_overlap = min_overlap
        self._schedule = schedule
        self.messages: List[ChatMessage] = []
        self.notes: Dict[str, Notes] = {}
        self.show_concept: Dict[str, bool] = {}
        self.overlays: Dict[str, AnnotationOverlay] = {}
        self.composer = Composer()
        self.selection_mode = False
        self.is_thinking = False
        self.error: Optional[str] = None
        self.bridge = SelectionBridge(self.on_text_selected, self.exit_selection_mode)

        self._append({
            "id": "welcome",
            "role": ROLE_MODEL,
            "parts": [{"text": StructuredNotes(WELCOME).to_json()}],
            "timestamp": _now_iso(),
        })

    # --- Messages ---

    def _append(self, message: ChatMessage) -> ChatMessage:
        for part in message["parts"]:
            if "text" in part:
                if message["role"] == ROLE_MODEL:
                    self.notes[message["id"]] = parse_notes(part["text"])
                else:
                    self.notes[message["id"]] = PlainText(part["text"])
                break
        self.messages.append(message)
        return message

    def find_message(self, ref: Optional[str] = None) -> ChatMessage:
        ids = [m["id"] for m in self.messages]
        return self.messages[parse_message_ref(len(self.messages), ref, ids)]

    def send(self, text: str, image: Optional[InlineData] = None) -> Optional[ChatMessage]:
        """Send a question; returns the model reply, or None when nothing was sent or it failed."""
        text = (text or "").strip()
        if not text and not image:
            return None

        self.composer.text = ""
        history = list(self.messages)
        parts: List[MessagePart] = []
        if image:
            parts.append({"inline_data": image})
        if text:
            parts.append({"text": text})
        self._append({"id": _new_id(), "role": ROLE_USER, "parts": parts, "timestamp": _now_iso()})
        self.is_thinking = True
        self.error = None

        try:
            response = self.teacher.generate_study_response(text or IMAGE_ONLY_PROMPT, history, image)
            visual_aid = None
            if response.get("visual_prompt"):
                visual_aid = self.teacher.generate_visual_aid(response["visual_prompt"])

            reply_parts: List[MessagePart] = [{"text": response.get("text", "")}]
            if visual_aid:
                reply_parts.append({"generated_image": visual_aid})
            reply = self._append({
                "id": _new_id(),
                "role": ROLE_MODEL,
                "parts": reply_parts,
                "timestamp": _now_iso(),
            })
            logger.info(f"Model replied with {len(reply_parts)} part(s)")
            return reply
        except Exception as e:
            logger.error(f"Study request failed: {e}")
            self.error = CONNECTION_ERROR
            return None
        finally:
            self.is_thinking = False

    def submit(self) -> Optional[ChatMessage]:
        """Explicitly send whatever is in the pending input."""
        payload = self.composer.take(disabled=self.is_thinking)
        if payload is None:
            return None
        text, image = payload
        return self.send(text, image)

    def toggle_concept(self, message_id: str) -> bool:
        self.show_concept[message_id] = not self.show_concept.get(message_id, False)
        return self.show_concept[message_id]

    # --- Layout ---

    def render(self, message: ChatMessage) -> RenderedBubble:
        return self.layout.render(
            message, self.notes.get(message["id"]), self.show_concept.get(message["id"], False)
        )

    def bubble_origin(self, message_id: str) -> Tuple[float, float]:
        """Top-left of a bubble in viewport coordinates (page unscrolled)."""
        top = HEADER_HEIGHT
        for message in self.messages:
            if message["id"] == message_id:
                return (PAGE_MARGIN, top)
            top += self.render(message).height + MESSAGE_SPACING
        raise ValueError(f"Unknown message: {message_id}")

    def regions_for(self, message_id: str) -> Optional[List[LineRegion]]:
        """Selectable lines of a bubble in viewport coordinates; None once the bubble is gone."""
        message = next((m for m in self.messages if m["id"] == message_id), None)
        if message is None:
            return None
        dx, dy = self.bubble_origin(message_id)
        regions = []
        for region in annotatable(self.render(message).regions):
            moved = dict(region)
            moved["rect"] = region["rect"].translate(dx, dy)
            regions.append(moved)
        return regions

    # --- Red pen ---

    def overlay_for(self, message: ChatMessage) -> AnnotationOverlay:
        if message["role"] != ROLE_MODEL:
            raise ValueError("The red pen only works on teacher notes")
        overlay = self.overlays.get(message["id"])
        if overlay is None:
            overlay = AnnotationOverlay(
                message["id"],
                regions=lambda: self.regions_for(message["id"]),
                bridge=self.bridge,
                annotation_mode=lambda: self.selection_mode,
                min_overlap=self.min_overlap,
                highlighter=Highlighter(schedule=self._schedule),
            )
            self.overlays[message["id"]] = overlay
        overlay.move_to(self.bubble_origin(message["id"]))
        return overlay

    def set_selection_mode(self, enabled: bool) -> None:
        if enabled == self.selection_mode:
            return
        self.selection_mode = enabled
        for overlay in self.overlays.values():
            overlay.cancel()
        logger.info(f"Red pen {'on' if enabled else 'off'}")

    def toggle_selection_mode(self) -> bool:
        self.set_selection_mode(not self.selection_mode)
        return self.selection_mode

    def exit_selection_mode(self) -> None:
        self.set_selection_mode(False)

    def on_text_selected(self, question: str) -> None:
        if not question.strip():
            return
        # placed in the input only; the student decides when to send
        self.composer.set_value(question)

    def circle(self, message_ref: Optional[str], points) -> Optional[str]:
        """Draw one red-pen gesture (surface coordinates) over a model bubble."""
        return self.overlay_for(self.find_message(message_ref)).trace(points)
