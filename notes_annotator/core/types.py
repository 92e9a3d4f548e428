from typing import List, NamedTuple, TypedDict

from notes_annotator.core.bbox import Box

ROLE_USER = "user"
ROLE_MODEL = "model"


class Point(NamedTuple):
    x: float
    y: float


class InlineData(TypedDict):
    mime_type: str
    data: str              # base64, no data: prefix


class MessagePart(TypedDict, total=False):
    text: str
    inline_data: InlineData       # image sent by the student
    generated_image: InlineData   # visual aid produced for a model reply


class ChatMessage(TypedDict):
    id: str
    role: str              # ROLE_USER | ROLE_MODEL
    parts: List[MessagePart]
    timestamp: str         # ISO-8601, UTC


class LineRegion(TypedDict, total=False):
    id: str
    rect: Box              # surface or viewport coordinates, see NotesLayout
    text: str
    kind: str              # "notebook", "math", "heading", "bullet"
    section: str           # "answer" | "concept" | "text"


class StudyResponse(TypedDict, total=False):
    text: str              # raw JSON notes from the model
    visual_prompt: str
