from unittest.mock import MagicMock

from notes_annotator.core.bridge import SelectionBridge, build_follow_up


def test_template():
    assert build_follow_up("Newton's second law") == (
        'Teacher, can you explain this part specifically? "Newton\'s second law"'
    )


def test_emit_fills_input_and_exits_mode():
    on_resolved = MagicMock()
    exit_mode = MagicMock()
    bridge = SelectionBridge(on_resolved, exit_mode)

    question = bridge.emit("= 50 N")

    assert question == 'Teacher, can you explain this part specifically? "= 50 N"'
    on_resolved.assert_called_once_with(question)
    exit_mode.assert_called_once_with()


def test_blank_text_is_ignored():
    on_resolved = MagicMock()
    exit_mode = MagicMock()
    bridge = SelectionBridge(on_resolved, exit_mode)

    for text in ("", "   ", "\n\t", None):
        assert bridge.emit(text) is None

    on_resolved.assert_not_called()
    exit_mode.assert_not_called()
