from __future__ import annotations

import pytest

from casewatch.normalizer import normalize


def test_delimiter_form_splits_options() -> None:
    result = normalize("Please confirm. Options: Yes, No, Reschedule")
    assert result.text == "Please confirm."
    assert result.options == ["Yes", "No", "Reschedule"]


def test_delimiter_form_drops_empty_options() -> None:
    result = normalize("Choose a slot Options: 10:00, , 11:30, ")
    assert result.text == "Choose a slot"
    assert result.options == ["10:00", "11:30"]


def test_delimiter_form_splits_at_first_marker_only() -> None:
    result = normalize("Pick Options: A, Options: B")
    assert result.text == "Pick"
    assert result.options == ["A", "Options: B"]


def test_structured_literal_uses_title_then_id() -> None:
    result = normalize("{'text': 'Hi there', 'buttons': [{'title': 'Book'}, {'id': 'cancel'}]}")
    assert result.text == "Hi there"
    assert result.options == ["Book", "cancel"]


def test_structured_literal_with_bare_keys() -> None:
    result = normalize("{text: 'Select department', buttons: [{title: 'Cardiology'}, {title: ' '}]}")
    assert result.text == "Select department"
    assert result.options == ["Cardiology"]


def test_structured_json_with_apostrophe_in_text() -> None:
    result = normalize('{"text": "We\'re open", "buttons": [{"title": "OK"}]}')
    assert result.text == "We're open"
    assert result.options == ["OK"]


def test_structured_literal_keeps_literal_words_inside_strings() -> None:
    raw = "{'text': 'None of these slots? True, we are open', 'buttons': [{'title': 'False alarm'}]}"
    result = normalize(raw)
    assert result.text == "None of these slots? True, we are open"
    assert result.options == ["False alarm"]


def test_structured_literal_with_python_values() -> None:
    raw = "{'text': 'Reminder sent', 'urgent': True, 'buttons': [{'title': 'OK', 'id': None}], 'meta': None}"
    result = normalize(raw)
    assert result.text == "Reminder sent"
    assert result.options == ["OK"]


def test_structured_literal_missing_text_defaults() -> None:
    result = normalize("{'buttons': [{'title': 'Yes'}]}")
    assert result.text == "Message sent"
    assert result.options == ["Yes"]


def test_structured_literal_without_buttons_has_no_options() -> None:
    result = normalize("{'text': 'Thanks!', 'buttons': []}")
    assert result.text == "Thanks!"
    assert result.options is None


def test_regex_fallback_when_literal_does_not_parse() -> None:
    raw = "{'text': 'Don't miss your slot', 'buttons': [{'title': 'Confirm'}, {'title': 'Skip'}]}"
    result = normalize(raw)
    assert result.text == "Don't miss your slot"
    assert result.options == ["Confirm", "Skip"]


def test_unterminated_literal_degrades_to_raw() -> None:
    result = normalize("{'text': 'broken")
    assert result.text == "{'text': 'broken"
    assert result.options is None


def test_plain_text_passes_through() -> None:
    result = normalize("plain text, nothing special")
    assert result.text == "plain text, nothing special"
    assert result.options is None
    assert result.to_dict() == {"text": "plain text, nothing special"}


def test_brace_without_known_keys_is_plain() -> None:
    result = normalize("{context: 1}")
    assert result.text == "{context: 1}"
    assert result.options is None


def test_escaped_newline_becomes_line_break() -> None:
    assert normalize("Hello\\nWorld").text == "Hello\nWorld"


def test_escaped_newline_converted_after_structured_parse() -> None:
    result = normalize("{'text': 'Line one\\\\nLine two'}")
    assert result.text == "Line one\nLine two"


@pytest.mark.parametrize("raw", [None, "", 42, "{", "{'buttons': ", "Options: "])
def test_never_raises(raw: object) -> None:
    result = normalize(raw)
    assert isinstance(result.text, str)
