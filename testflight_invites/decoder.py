"""Entity and escape decoding for link extraction."""

import re
from urllib.parse import unquote

# Only the entities mail templates actually use around invite links.
HTML_ENTITIES = {
    "&amp;": "&",
    "&lt;": "<",
    "&gt;": ">",
    "&quot;": '"',
    "&#39;": "'",
    "&nbsp;": " ",
}

_ENTITY_RE = re.compile("|".join(re.escape(entity) for entity in HTML_ENTITIES))
_SOFT_BREAK_RE = re.compile(r"=\r?\n")
_QP_DECLARATION_RE = re.compile(r"Content-Transfer-Encoding:\s*quoted-printable", re.IGNORECASE)


def decode_entities(text: str) -> str:
    """
    Replace the fixed set of HTML entities with their literal characters.

    Decoding repeats until nothing changes, so double-escaped text such as
    "&amp;amp;" ends up as "&" and decoding is idempotent. Every pass
    shortens the string, which bounds the loop. Text without entities is
    returned unchanged.
    """
    if not text:
        return ""
    while True:
        decoded = _ENTITY_RE.sub(lambda match: HTML_ENTITIES[match.group(0)], text)
        if decoded == text:
            return decoded
        text = decoded


def decode_percent(text: str) -> str:
    """Percent-decode a URL that was matched in its encoded form."""
    if not text:
        return ""
    return unquote(text)


def unfold_soft_breaks(text: str) -> str:
    """
    Undo quoted-printable line folding in raw message source.

    Removes soft line breaks and turns the escaped "=3D" back into "=", so a
    link split across physical lines becomes one contiguous string again.
    """
    if not text:
        return ""
    return _SOFT_BREAK_RE.sub("", text).replace("=3D", "=")


def unfold_quoted_printable(raw_source: str) -> str:
    """Unfold soft breaks only when the source declares quoted-printable parts."""
    if not raw_source:
        return ""
    if not _QP_DECLARATION_RE.search(raw_source):
        return raw_source
    return unfold_soft_breaks(raw_source)
