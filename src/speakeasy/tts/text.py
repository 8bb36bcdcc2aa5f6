"""Text cleanup applied to every request before it is queued."""

import re

# Emoticons, pictographs, transport, flags, dingbats, supplemental symbols
_EMOJI_RE = re.compile(
    "["
    "\U0001f600-\U0001f64f"
    "\U0001f300-\U0001f5ff"
    "\U0001f680-\U0001f6ff"
    "\U0001f1e0-\U0001f1ff"
    "\U0001f900-\U0001f9ff"
    "\U0001fa70-\U0001faff"
    "\u2600-\u27bf"
    "\ufe0f\u200d"
    "]+"
)
_SYMBOL_RE = re.compile(r"[^\w\s.,!?'-]")
_WHITESPACE_RE = re.compile(r"\s+")


def clean_text_for_speech(text: str) -> str:
    """Strip emoji and symbols, then collapse whitespace.

    Args:
        text: Raw caller text

    Returns:
        Text safe to hand to any provider. May be empty.
    """
    text = _EMOJI_RE.sub("", text)
    text = _SYMBOL_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", text).strip()
