import base64
import json
import logging
import mimetypes
from typing import List, Optional

from mcp.server.fastmcp import FastMCP

from notes_annotator.backends.audio import decode_pcm16, duration_seconds, write_wav
from notes_annotator.backends.gemini_backend import GeminiTeacher
from notes_annotator.core import paths as _paths
from notes_annotator.core.conversation import ConversationController
from notes_annotator.core.notes import PlainText, StructuredNotes, annotatable, render_text
from notes_annotator.core.paths import (
    ALLOWED_EXTENSIONS,
    find_file,
    list_image_files_text,
    load_image,
    output_path,
)
from notes_annotator.core.types import ROLE_MODEL, ChatMessage

logger = logging.getLogger(__name__)

mcp = FastMCP("VIBH Study Assistant")

_controller: Optional[ConversationController] = None


def configure(controller: ConversationController) -> ConversationController:
    global _controller
    _controller = controller
    return controller


def get_controller() -> ConversationController:
    if _controller is None:
        return configure(ConversationController(GeminiTeacher()))
    return _controller


# ---------- Formatting ----------
def _message_summary(controller: ConversationController, message: ChatMessage) -> dict:
    notes = controller.notes.get(message["id"])
    show = controller.show_concept.get(message["id"], False)
    item = {
        "id": message["id"],
        "role": message["role"],
        "timestamp": message["timestamp"],
        "has_image": any("inline_data" in p for p in message["parts"]),
        "has_visual_aid": any("generated_image" in p for p in message["parts"]),
    }
    if notes is not None:
        item["notes"] = render_text(notes, show)
    if isinstance(notes, StructuredNotes):
        item["has_logic"] = notes.has_concept
        item["logic_visible"] = show and notes.has_concept
    if message["role"] == ROLE_MODEL:
        # surface-relative rects, the coordinate frame circle_text expects
        item["lines"] = [
            {"id": r["id"], "kind": r["kind"], "text": r["text"], "rect": list(r["rect"])}
            for r in annotatable(controller.render(message).regions)
        ]
    return item


def _state(controller: ConversationController, **extra) -> str:
    result = {
        "annotation_mode": controller.selection_mode,
        "pending_input": controller.composer.text,
        "image_attached": controller.composer.image is not None,
        "error": controller.error,
    }
    result.update(extra)
    return json.dumps(result, indent=2, ensure_ascii=False)


# ---------- Conversation ----------
@mcp.tool()
async def ask_teacher(question: str = "", image_path: Optional[str] = None) -> str:
    """Ask VIBH a study question, optionally with an image of the problem.

    Parameters
    ----------
    question: str
        The question text. May be empty when an image is attached.
    image_path: Optional[str]
        Filename (relative) or absolute path of an image inside the configured
        accessible directories.
    """
    controller = get_controller()
    image = None
    if image_path:
        path = find_file(image_path)
        if not path:
            return f"Error: Could not find image '{image_path}'."
        image = load_image(path)

    reply = controller.send(question, image)
    if reply is None:
        if controller.error:
            return f"Error: {controller.error}"
        return "Error: Nothing to send. Provide a question or an image."
    return json.dumps(_message_summary(controller, reply), indent=2, ensure_ascii=False)


@mcp.tool()
async def send_pending_input() -> str:
    """Send the pending input (for example a red-pen follow-up question) to the teacher."""
    controller = get_controller()
    if not controller.composer.can_send(controller.is_thinking):
        return "Error: The input is empty."
    reply = controller.submit()
    if reply is None:
        return f"Error: {controller.error or 'Request failed.'}"
    return json.dumps(_message_summary(controller, reply), indent=2, ensure_ascii=False)


@mcp.tool()
async def show_message(message: Optional[str] = "last") -> str:
    """Show one message with its selectable note lines.

    `message` accepts `last`, `first`, a 1-based number, `-N` from the end, or a message id.
    """
    controller = get_controller()
    try:
        msg = controller.find_message(message)
    except ValueError as ve:
        return f"Error: {ve}"
    return json.dumps(_message_summary(controller, msg), indent=2, ensure_ascii=False)


@mcp.tool()
async def list_messages() -> str:
    """List the conversation with one line of preview per message."""
    controller = get_controller()
    rows = []
    for i, msg in enumerate(controller.messages, 1):
        notes = controller.notes.get(msg["id"])
        text = render_text(notes).strip() if notes is not None else ""
        preview = text.splitlines()[0] if text else ""
        rows.append({"number": i, "id": msg["id"], "role": msg["role"], "preview": preview[:80]})
    return json.dumps({"total_messages": len(rows), "messages": rows}, indent=2, ensure_ascii=False)


@mcp.tool()
async def toggle_logic(message: Optional[str] = "last") -> str:
    """Show or hide the step-by-step board work of a reply."""
    controller = get_controller()
    try:
        msg = controller.find_message(message)
    except ValueError as ve:
        return f"Error: {ve}"
    notes = controller.notes.get(msg["id"])
    if not isinstance(notes, StructuredNotes) or not notes.has_concept:
        return "Error: This message has no step-by-step logic."
    controller.toggle_concept(msg["id"])
    return json.dumps(_message_summary(controller, msg), indent=2, ensure_ascii=False)


# ---------- Red pen ----------
@mcp.tool()
async def set_annotation_mode(enabled: bool = True) -> str:
    """Turn the red-pen selection tool on or off."""
    controller = get_controller()
    controller.set_selection_mode(enabled)
    return _state(controller)


@mcp.tool()
async def circle_text(points: List[List[float]], message: Optional[str] = "last") -> str:
    """Circle part of a reply with the red pen.

    Parameters
    ----------
    points: List[List[float]]
        The pen path as `[x, y]` pairs relative to the message bubble (the same
        frame as the `rect` values returned by `show_message`).
    message: Optional[str]
        Which reply to draw on; defaults to the last message.

    The circled lines become a follow-up question in the pending input. It is
    not sent; call `send_pending_input` to ask it.
    """
    controller = get_controller()
    if not controller.selection_mode:
        return "Error: Annotation mode is off. Call set_annotation_mode first."
    try:
        question = controller.circle(message, points)
    except ValueError as ve:
        return f"Error: {ve}"
    return _state(controller, selected=question is not None)


# ---------- Input capture ----------
@mcp.tool()
async def add_voice_transcript(transcript: str) -> str:
    """Append a speech-to-text transcript to the pending input."""
    controller = get_controller()
    controller.composer.append_transcript(transcript)
    return _state(controller)


@mcp.tool()
async def attach_image(image_path: str) -> str:
    """Attach an image to the pending input; `image_path=""` removes it."""
    controller = get_controller()
    if not image_path:
        controller.composer.clear_image()
        return _state(controller)
    path = find_file(image_path)
    if not path:
        return f"Error: Could not find image '{image_path}'."
    controller.composer.attach_image(load_image(path))
    return _state(controller, image=path.name)


# ---------- Media ----------
@mcp.tool()
async def read_aloud(message: Optional[str] = "last", section: str = "answer") -> str:
    """Synthesize a reply as speech and save it as a WAV file.

    `section` is `answer` or `logic` (the step-by-step board work).
    """
    controller = get_controller()
    try:
        msg = controller.find_message(message)
    except ValueError as ve:
        return f"Error: {ve}"
    notes = controller.notes.get(msg["id"])
    if msg["role"] != ROLE_MODEL or notes is None:
        return "Error: Only teacher replies can be read aloud."
    if isinstance(notes, PlainText):
        text = notes.text
    elif section == "logic":
        if not notes.has_concept:
            return "Error: This message has no step-by-step logic."
        text = notes.concept_content
    else:
        text = notes.final_answer

    try:
        audio = controller.teacher.generate_speech(text)
    except RuntimeError as e:
        logger.error(f"Speech request failed: {e}")
        return f"Error: {e}"
    if not audio:
        return "Error: Failed to generate speech."

    samples = decode_pcm16(audio)[0]
    path = write_wav(audio, output_path(f"{msg['id']}-{section}.wav"))
    result = {
        "file": str(path),
        "duration_seconds": round(duration_seconds(audio), 2),
        "peak": round(max((abs(s) for s in samples), default=0.0), 3),
    }
    return json.dumps(result, indent=2, ensure_ascii=False)


@mcp.tool()
async def save_visual_aid(message: Optional[str] = "last") -> str:
    """Save the generated visual aid of a reply to the output directory."""
    controller = get_controller()
    try:
        msg = controller.find_message(message)
    except ValueError as ve:
        return f"Error: {ve}"
    for part in msg["parts"]:
        image = part.get("generated_image")
        if image:
            ext = mimetypes.guess_extension(image["mime_type"]) or ".png"
            path = output_path(f"{msg['id']}-visual{ext}")
            path.write_bytes(base64.b64decode(image["data"]))
            logger.info(f"Saved visual aid to {path}")
            return json.dumps({"file": str(path), "mime_type": image["mime_type"]}, indent=2)
    return "Error: This message has no visual aid."


# ---------- Files ----------
@mcp.tool()
async def list_image_files(directory: str = "all", depth: int = 0, limit: int = 50) -> str:
    """
    List images that can be attached to a question.

    `directory` is "all" or a substring filter on the allowed roots. `depth`
    0 = only the root, clamped to 5. `limit` caps files shown per root
    (most recent first, clamped to 1..200).
    """
    return list_image_files_text(directory, depth, limit)


@mcp.tool()
async def show_accessible_directories() -> str:
    """Return the current directory/configuration constraints as JSON."""
    info = {
        "accessible_directories": _paths.SEARCH_DIRECTORIES,
        "directory_count": len(_paths.SEARCH_DIRECTORIES),
        "output_directory": _paths.OUTPUT_DIRECTORY,
        "max_file_size_mb": _paths.MAX_FILE_SIZE // (1024 * 1024),
        "allowed_extensions": ALLOWED_EXTENSIONS,
    }
    return json.dumps(info, indent=2, ensure_ascii=False)
