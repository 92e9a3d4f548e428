import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

FOLLOW_UP_TEMPLATE = 'Teacher, can you explain this part specifically? "{text}"'


def build_follow_up(text: Optional[str]) -> Optional[str]:
    if not text or not text.strip():
        return None
    return FOLLOW_UP_TEMPLATE.format(text=text)


class SelectionBridge:
    """Hands circled text to the conversation as a pending follow-up question.

    Never sends anything itself; the student still has to submit.
    """

    def __init__(
        self,
        on_selection_resolved: Callable[[str], None],
        exit_annotation_mode: Callable[[], None],
    ):
        self._on_selection_resolved = on_selection_resolved
        self._exit_annotation_mode = exit_annotation_mode

    def emit(self, text: Optional[str]) -> Optional[str]:
        question = build_follow_up(text)
        if question is None:
            return None
        logger.info(f"Selection resolved to {len(text)} chars of notes")
        self._on_selection_resolved(question)
        self._exit_annotation_mode()
        return question
