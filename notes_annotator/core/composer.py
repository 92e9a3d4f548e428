from typing import Optional, Tuple

from notes_annotator.core.types import InlineData


class Composer:
    """The pending input box: text plus an optional attached image."""

    def __init__(self):
        self.text = ""
        self.image: Optional[InlineData] = None

    def set_value(self, value: Optional[str]) -> None:
        # an empty external value never wipes what the student typed
        if value:
            self.text = value

    def append_transcript(self, transcript: str) -> str:
        transcript = (transcript or "").strip()
        if transcript:
            self.text = f"{self.text} {transcript}" if self.text else transcript
        return self.text

    def attach_image(self, image: InlineData) -> None:
        self.image = image

    def clear_image(self) -> None:
        self.image = None

    def can_send(self, disabled: bool = False) -> bool:
        return not disabled and bool(self.text.strip() or self.image)

    def take(self, disabled: bool = False) -> Optional[Tuple[str, Optional[InlineData]]]:
        """Hand over the pending text and image, clearing both."""
        if not self.can_send(disabled):
            return None
        payload = (self.text.strip(), self.image)
        self.text = ""
        self.image = None
        return payload
