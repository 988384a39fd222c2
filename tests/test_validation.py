from __future__ import annotations

from formguard.validation import REQUIRED_MESSAGE, is_blank, validate_answers


def test_blank_values():
    assert is_blank(None)
    assert is_blank("")
    assert is_blank("   ")
    assert is_blank([])
    assert not is_blank("x")
    assert not is_blank(["a"])


def test_required_fields_reported(sample_fields):
    errors = validate_answers(sample_fields, {"field_topics": ["Speed"]})
    assert errors == {"field_name": REQUIRED_MESSAGE}


def test_whitespace_only_answer_is_missing(sample_fields):
    assert validate_answers(sample_fields, {"field_name": "  \t"}) == {
        "field_name": REQUIRED_MESSAGE
    }


def test_optional_fields_may_be_empty(sample_fields):
    assert validate_answers(sample_fields, {"field_name": "Ada"}) == {}


def test_required_checkbox_needs_a_selection():
    fields = [{"id": "f", "type": "checkbox", "required": True, "options": ["a", "b"]}]
    assert validate_answers(fields, {"f": []}) == {"f": REQUIRED_MESSAGE}
    assert validate_answers(fields, {"f": ["b"]}) == {}


def test_identity_keys_required_when_requested(sample_fields):
    errors = validate_answers(
        sample_fields, {"field_name": "Ada", "user_name": "Ada"}, require_identity=True
    )
    assert errors == {"user_email": REQUIRED_MESSAGE}
