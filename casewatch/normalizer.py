"""Normalize raw chat messages into a text + options form for rendering.

Messages stored by the backend come in several shapes depending on which
bot version produced them:

- ``"Pick one. Options: Yes, No"`` (delimiter form)
- ``"{'text': 'Pick one', 'buttons': [{'title': 'Yes'}]}"`` (a Python dict
  literal that was str()'d instead of serialized)
- anything else, which is shown as-is.

``normalize`` never raises; unparseable input degrades to the raw string.
"""

import json
import logging
import re
from typing import Any, List, Optional

from .models import CanonicalMessage

logger = logging.getLogger(__name__)

OPTIONS_MARKER = "Options: "
DEFAULT_STRUCTURED_TEXT = "Message sent"

_KEY_TOKEN = re.compile(r"""['"]?\b(?:text|buttons)\b['"]?\s*:""")
_BARE_KEY = re.compile(r"([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)(\s*:)")
_PY_LITERALS = re.compile(r"([:\[,]\s*)(True|False|None)(?=\s*[,}\]])")
_TEXT_FIELD = re.compile(r"'text'\s*:\s*'(.*?)'(?=\s*[,}])", re.DOTALL)
_TEXT_FIELD_LOOSE = re.compile(r"'text'\s*:\s*'(.*?)'", re.DOTALL)
_TITLE_FIELD = re.compile(r"'title'\s*:\s*'(.*?)'", re.DOTALL)

_QUOTE_TRANSLATION = str.maketrans({
    "‘": "'",
    "’": "'",
    "“": '"',
    "”": '"',
})
_JSON_LITERALS = {"True": "true", "False": "false", "None": "null"}


def _clean_list(values: List[str]) -> Optional[List[str]]:
    cleaned = [value.strip() for value in values if value and value.strip()]
    return cleaned or None


def _split_options(raw: str) -> CanonicalMessage:
    text, _, tail = raw.partition(OPTIONS_MARKER)
    return CanonicalMessage(text=text.strip(), options=_clean_list(tail.split(", ")))


def _looks_structured(raw: str) -> bool:
    return raw.lstrip().startswith("{") and bool(_KEY_TOKEN.search(raw))


def _coerce_to_json(raw: str) -> str:
    """Rewrite a dict-literal-ish string into strict JSON."""
    coerced = raw.strip().translate(_QUOTE_TRANSLATION).replace("'", '"')
    coerced = _BARE_KEY.sub(r'\1"\2"\3', coerced)
    return _PY_LITERALS.sub(lambda match: match.group(1) + _JSON_LITERALS[match.group(2)], coerced)


def _parse_structured(raw: str) -> CanonicalMessage:
    """
    Parse the structured-literal form.

    Raises:
        ValueError: If the payload cannot be coerced into a JSON object.
    """
    try:
        data = json.loads(raw)
    except ValueError:
        data = json.loads(_coerce_to_json(raw))

    if not isinstance(data, dict):
        raise ValueError(f"expected an object, got {type(data).__name__}")

    text = str(data.get("text") or "").strip() or DEFAULT_STRUCTURED_TEXT

    titles: List[str] = []
    buttons = data.get("buttons")
    if isinstance(buttons, list):
        for button in buttons:
            if not isinstance(button, dict):
                continue
            label: Any = button.get("title") or button.get("id")
            if label is not None:
                titles.append(str(label))

    return CanonicalMessage(text=text, options=_clean_list(titles))


def _extract_with_patterns(raw: str) -> CanonicalMessage:
    match = _TEXT_FIELD.search(raw) or _TEXT_FIELD_LOOSE.search(raw)
    text = match.group(1) if match else raw
    return CanonicalMessage(text=text, options=_clean_list(_TITLE_FIELD.findall(raw)))


def _normalize(raw: str) -> CanonicalMessage:
    if OPTIONS_MARKER in raw:
        return _split_options(raw)

    if _looks_structured(raw):
        try:
            return _parse_structured(raw)
        except (ValueError, TypeError) as e:
            logger.debug(f"Structured message did not parse, using pattern fallback: {e}")
            return _extract_with_patterns(raw)

    return CanonicalMessage(text=raw)


def normalize(raw: Any) -> CanonicalMessage:
    """
    Convert a raw message string into its canonical form.

    Tiers are tried in order (delimiter, structured literal, pattern
    fallback, plain) and the first match wins. Literal ``\\n`` sequences in
    the resulting text are always turned into real line breaks.

    Args:
        raw: The message as stored by the backend.

    Returns:
        A CanonicalMessage. ``options`` is None when the message has none.
    """
    if raw is None:
        raw = ""
    elif not isinstance(raw, str):
        raw = str(raw)

    try:
        message = _normalize(raw)
    except Exception as e:  # never raise to the renderer
        logger.warning(f"Message normalization failed, rendering raw text: {e}")
        message = CanonicalMessage(text=raw)

    message.text = message.text.replace("\\n", "\n")
    return message
