import base64
import logging
import os
from typing import Any, List, Optional, Sequence

from google import genai
from google.genai import errors, types

from notes_annotator.core.notes import StructuredNotes, parse_notes
from notes_annotator.core.prompts import REFUSAL, SPEECH_PROMPT, SYSTEM_INSTRUCTION, VISUAL_AID_PROMPT
from notes_annotator.core.types import ROLE_USER, ChatMessage, InlineData, MessagePart, StudyResponse

logger = logging.getLogger(__name__)

STUDY_MODEL = "gemini-3-pro-preview"
SPEECH_MODEL = "gemini-2.5-flash-preview-tts"
IMAGE_MODEL = "gemini-2.5-flash-image"
SPEECH_VOICE = "Kore"
HISTORY_LIMIT = 10
TEMPERATURE = 0.1

NOTES_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "finalAnswer": types.Schema(type=types.Type.STRING),
        "conceptContent": types.Schema(type=types.Type.STRING),
        "hasConcept": types.Schema(type=types.Type.BOOLEAN),
        "visualPrompt": types.Schema(type=types.Type.STRING),
    },
    required=["finalAnswer", "conceptContent", "hasConcept"],
)


def resolve_api_key(api_key: Optional[str] = None) -> str:
    return (
        api_key
        or os.environ.get("GEMINI_API_KEY")
        or os.environ.get("API_KEY")
        or os.environ.get("GOOGLE_API_KEY")
        or ""
    )


def create_client(api_key: Optional[str] = None) -> genai.Client:
    key = resolve_api_key(api_key)
    if not key:
        raise RuntimeError("Missing GEMINI_API_KEY (or API_KEY).")
    return genai.Client(api_key=key)


# --- Request building ---

def _inline_part(inline: InlineData) -> types.Part:
    return types.Part.from_bytes(data=base64.b64decode(inline["data"]), mime_type=inline["mime_type"])


def _to_part(part: MessagePart) -> Optional[types.Part]:
    text = part.get("text")
    if text and text.strip():
        return types.Part.from_text(text=text)
    for key in ("inline_data", "generated_image"):
        inline = part.get(key)
        if inline and inline.get("data") and inline.get("mime_type"):
            return _inline_part(inline)
    return None


def build_history(history: Sequence[ChatMessage], limit: int = HISTORY_LIMIT) -> List[types.Content]:
    """Recent turns as API contents; empty parts and then empty turns are dropped."""
    contents: List[types.Content] = []
    for msg in list(history)[-limit:]:
        parts = [p for p in (_to_part(part) for part in msg["parts"]) if p is not None]
        if not parts:
            continue
        role = "user" if msg["role"] == ROLE_USER else "model"
        contents.append(types.Content(role=role, parts=parts))
    return contents


# --- Response reading ---

def _response_parts(response: Any) -> list:
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return []
    content = getattr(candidates[0], "content", None)
    return list(getattr(content, "parts", None) or [])


def _inline_bytes(part: Any) -> Optional[bytes]:
    inline = getattr(part, "inline_data", None)
    data = getattr(inline, "data", None) if inline else None
    if not data:
        return None
    if isinstance(data, str):
        return base64.b64decode(data)
    return bytes(data)


def _is_blocked(error: Exception) -> bool:
    if isinstance(error, errors.APIError) and error.code == 403:
        return True
    message = str(error)
    return "403" in message or "blocked" in message.lower()


# --- Outbound calls ---

def generate_study_response(
    client: genai.Client,
    prompt: str,
    history: Sequence[ChatMessage],
    image: Optional[InlineData] = None,
    model: str = STUDY_MODEL,
) -> StudyResponse:
    current: List[types.Part] = []
    if image and image.get("data") and image.get("mime_type"):
        current.append(_inline_part(image))
    if prompt and prompt.strip():
        current.append(types.Part.from_text(text=prompt))
    if not current:
        raise ValueError("No valid content to send")

    contents = build_history(history) + [types.Content(role="user", parts=current)]
    try:
        response = client.models.generate_content(
            model=model,
            contents=contents,
            config=types.GenerateContentConfig(
                system_instruction=SYSTEM_INSTRUCTION,
                temperature=TEMPERATURE,
                response_mime_type="application/json",
                response_schema=NOTES_SCHEMA,
            ),
        )
    except Exception as e:
        logger.error(f"Gemini API error: {e}")
        if _is_blocked(e):
            return {"text": StructuredNotes(REFUSAL).to_json()}
        raise

    text = response.text or ""
    result: StudyResponse = {"text": text}
    notes = parse_notes(text)
    if isinstance(notes, StructuredNotes) and notes.visual_prompt:
        result["visual_prompt"] = notes.visual_prompt
    return result


def generate_speech(
    client: genai.Client,
    text: str,
    model: str = SPEECH_MODEL,
    voice: str = SPEECH_VOICE,
) -> Optional[bytes]:
    """Raw PCM16 speech for `text`, or None when synthesis failed."""
    try:
        response = client.models.generate_content(
            model=model,
            contents=SPEECH_PROMPT.format(text=text),
            config=types.GenerateContentConfig(
                response_modalities=["AUDIO"],
                speech_config=types.SpeechConfig(
                    voice_config=types.VoiceConfig(
                        prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=voice),
                    ),
                ),
            ),
        )
        for part in _response_parts(response):
            audio = _inline_bytes(part)
            if audio:
                return audio
        return None
    except Exception as e:
        logger.error(f"Speech generation error: {e}")
        return None


def generate_visual_aid(client: genai.Client, prompt: str, model: str = IMAGE_MODEL) -> Optional[InlineData]:
    try:
        response = client.models.generate_content(
            model=model,
            contents=VISUAL_AID_PROMPT.format(prompt=prompt),
            config=types.GenerateContentConfig(
                image_config=types.ImageConfig(aspect_ratio="1:1"),
            ),
        )
        for part in _response_parts(response):
            data = _inline_bytes(part)
            if data:
                return {
                    "mime_type": part.inline_data.mime_type or "image/png",
                    "data": base64.b64encode(data).decode("ascii"),
                }
        return None
    except Exception as e:
        logger.error(f"Image generation error: {e}")
        return None


class GeminiTeacher:
    """The three outbound requests behind one lazily created client."""

    def __init__(self, api_key: Optional[str] = None, client: Optional[genai.Client] = None):
        self._api_key = api_key
        self._client = client

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            self._client = create_client(self._api_key)
        return self._client

    def generate_study_response(
        self, prompt: str, history: Sequence[ChatMessage], image: Optional[InlineData] = None
    ) -> StudyResponse:
        return generate_study_response(self.client, prompt, history, image)

    def generate_speech(self, text: str) -> Optional[bytes]:
        return generate_speech(self.client, text)

    def generate_visual_aid(self, prompt: str) -> Optional[InlineData]:
        return generate_visual_aid(self.client, prompt)
