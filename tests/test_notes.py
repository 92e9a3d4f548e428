import json

import pytest

from notes_annotator.core.bbox import Box
from notes_annotator.core.notes import (
    CONCEPT_GAP,
    CONCEPT_INDENT,
    IMAGE_HEIGHT,
    LINE_HEIGHTS,
    NotesLayout,
    PlainText,
    StructuredNotes,
    annotatable,
    classify_line,
    parse_notes,
    render_text,
)

BOARD = {
    "finalAnswer": "Force\n= Mass × Acceleration\n= 50 N",
    "conceptContent": "Mass\n= 10 kg\n\nAcceleration\n= 5 m/s²",
    "hasConcept": True,
    "visualPrompt": "free body diagram of a block",
}


def message(text, mid="m1", role="model", extra_parts=()):
    return {"id": mid, "role": role, "parts": list(extra_parts) + [{"text": text}], "timestamp": ""}


def test_structured_notes_parsed_once():
    notes = parse_notes(json.dumps(BOARD))
    assert notes == StructuredNotes(
        final_answer=BOARD["finalAnswer"],
        concept_content=BOARD["conceptContent"],
        has_concept=True,
        visual_prompt="free body diagram of a block",
    )


@pytest.mark.parametrize("raw", ["Just words", "", None, "[1, 2]", '{"answer": "x"}', '"quoted"'])
def test_anything_else_is_plain_text(raw):
    assert parse_notes(raw) == PlainText(raw or "")


def test_blank_visual_prompt_and_missing_fields():
    notes = parse_notes('{"finalAnswer": "Hi", "visualPrompt": "  "}')
    assert notes == StructuredNotes("Hi", "", False, None)


def test_to_json_round_trips_through_parse():
    notes = StructuredNotes("Hello", "", False)
    assert parse_notes(notes.to_json()) == notes


@pytest.mark.parametrize(
    "line,kind",
    [
        ("", "blank"),
        ("   ", "blank"),
        ("= 50 N", "math"),
        ("10 kg × 5 m/s² is the product we need here.", "math"),
        ("Newton's Second Law", "heading"),
        ("• Inertia is resistance to change in motion.", "bullet"),
        ("• short", "bullet"),
        ("Force is the push or pull acting on an object at rest.", "notebook"),
        ("A short sentence.", "notebook"),
    ],
)
def test_classify_line(line, kind):
    assert classify_line(line) == kind


def test_layout_regions_in_document_order_with_stacked_rects():
    layout = NotesLayout(char_width=10.0)
    bubble = layout.render(message(json.dumps(BOARD)), parse_notes(json.dumps(BOARD)))
    assert [r["text"] for r in bubble.regions] == ["Force", "= Mass × Acceleration", "= 50 N"]
    first, second, third = bubble.regions
    assert first["rect"] == Box(0, 0, 50, LINE_HEIGHTS["heading"])
    assert second["rect"].top == first["rect"].bottom
    assert third["rect"].top == second["rect"].bottom
    assert bubble.height == third["rect"].bottom
    assert [r["id"] for r in bubble.regions] == ["m1:answer:0", "m1:answer:1", "m1:answer:2"]


def test_concept_section_only_when_toggled_open():
    notes = parse_notes(json.dumps(BOARD))
    layout = NotesLayout()
    closed = layout.render(message(json.dumps(BOARD)), notes)
    opened = layout.render(message(json.dumps(BOARD)), notes, show_concept=True)
    assert all(r["section"] == "answer" for r in closed.regions)

    concept = [r for r in opened.regions if r["section"] == "concept"]
    assert [r["text"] for r in concept] == ["Mass", "= 10 kg", "Acceleration", "= 5 m/s²"]
    assert concept[0]["rect"].top == closed.height + CONCEPT_GAP
    assert concept[0]["rect"].left == CONCEPT_INDENT
    # blank line between steps takes vertical space but is not a region
    assert concept[2]["rect"].top == concept[1]["rect"].bottom + LINE_HEIGHTS["blank"]


def test_images_push_text_down():
    image = {"inline_data": {"mime_type": "image/png", "data": "AAAA"}}
    bubble = NotesLayout().render(message("Solve this", role="user", extra_parts=[image]), PlainText("Solve this"))
    assert bubble.regions[0]["rect"].top == IMAGE_HEIGHT


def test_bullets_are_laid_out_but_not_annotatable():
    text = "Key points\n• Inertia resists change.\nThat is the first law of motion, stated simply."
    bubble = NotesLayout().render(message(text), PlainText(text))
    assert [r["kind"] for r in bubble.regions] == ["heading", "bullet", "notebook"]
    assert [r["kind"] for r in annotatable(bubble.regions)] == ["heading", "notebook"]


def test_long_lines_clip_to_column_width():
    text = "x" * 500 + "."
    bubble = NotesLayout(width=300).render(message(text), PlainText(text))
    assert bubble.regions[0]["rect"].right == 300


def test_render_text():
    notes = parse_notes(json.dumps(BOARD))
    assert render_text(notes) == BOARD["finalAnswer"]
    assert "Step-by-Step Board Work" in render_text(notes, show_concept=True)
    assert render_text(PlainText("hi"), show_concept=True) == "hi"
