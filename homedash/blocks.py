# homedash/blocks.py
"""
Pull balanced ``{...}`` / ``[...]`` regions out of free text.

Model responses wrap their JSON in prose and markdown fences, so the whole
blob can't go through ``json.loads``. These helpers find one region at a time
and leave decoding to the caller.
"""
from typing import Optional

PAIRS = {"{": "}", "[": "]"}

_WS = " \t\r\n"


def extract_balanced(text: str, start: int = 0, opener: Optional[str] = None) -> Optional[str]:
    """
    Return the substring from the opening delimiter at/after ``start`` to its
    matching closer, or None when there is no region there.

    Only whitespace may sit between ``start`` and the opener. While inside a
    double-quoted string, delimiters don't count and a backslash escapes the
    next character. Returns None if the text ends before depth returns to 0.
    """
    if not text:
        return None
    i = max(start, 0)
    n = len(text)
    while i < n and text[i] in _WS:
        i += 1
    if i >= n:
        return None

    open_ch = text[i]
    if open_ch not in PAIRS or (opener is not None and open_ch != opener):
        return None
    close_ch = PAIRS[open_ch]

    depth = 0
    in_string = False
    escape_next = False
    for j in range(i, n):
        ch = text[j]
        if in_string:
            if escape_next:
                escape_next = False
            elif ch == "\\":
                escape_next = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == open_ch:
            depth += 1
        elif ch == close_ch:
            depth -= 1
            if depth == 0:
                return text[i:j + 1]
    return None


def enclosing_brace(text: str, index: int) -> int:
    """
    Walk left from ``index`` over whitespace only and return the position of a
    ``{`` found there, or -1 if anything else comes first.
    """
    for i in range(index - 1, -1, -1):
        ch = text[i]
        if ch == "{":
            return i
        if ch not in _WS:
            return -1
    return -1


def find_array_after(text: str, index: int) -> Optional[str]:
    """Balanced ``[...]`` region starting at ``index`` (which should point at or just before the ``[``)."""
    return extract_balanced(text, index, opener="[")
