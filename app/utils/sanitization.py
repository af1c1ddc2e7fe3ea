"""Input sanitization helpers"""

import re

_SCRIPT_BLOCK = re.compile(r"<script[^>]*>.*?</script>", re.I | re.S)
_HTML_TAG = re.compile(r"</?[a-zA-Z][^>]*>")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f\u200b-\u200d\ufeff]")
_WHITESPACE = re.compile(r"\s+")


def sanitize_bill_reference(value: str) -> str:
    """
    Strip markup and invisible characters from a bill reference.

    Script blocks and HTML tags are removed, control and zero-width characters
    dropped, then whitespace collapsed and trimmed. Character set and length
    rules are enforced afterwards by the request schema.
    """
    value = _SCRIPT_BLOCK.sub("", value)
    value = _HTML_TAG.sub("", value)
    value = _CONTROL_CHARS.sub("", value)
    value = _WHITESPACE.sub(" ", value)
    return value.strip()
