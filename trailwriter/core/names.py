"""Serialization of name hierarchies into the index consumer's string format.

A serialized name looks like::

    <delimiter>\\tm<name>\\ts<prefix>\\tp<postfix>\\tn<name>\\ts<prefix>\\tp<postfix>...

Every structural marker is a TAB followed by one letter. A TAB that is part of
a name component is written as ``\\tt``; no other character is escaped, so names
without tabs serialize exactly as the consumer writes them itself.
"""

from __future__ import annotations

from trailwriter.core.exceptions import InvalidNameError
from trailwriter.core.models import NameElement, NameHierarchy

DELIMITER_FILE = "/"
DELIMITER_CXX = "::"
DELIMITER_JAVA = "."
DELIMITER_UNKNOWN = "@"

_MARK = "\t"
_META = "m"
_NAME = "n"
_PREFIX = "s"
_POSTFIX = "p"
_LITERAL_TAB = "t"


def _escape(text: str) -> str:
    return text.replace(_MARK, _MARK + _LITERAL_TAB)


def _encode_element(element: NameElement) -> str:
    return (
        f"{_escape(element.name)}{_MARK}{_PREFIX}{_escape(element.prefix)}"
        f"{_MARK}{_POSTFIX}{_escape(element.postfix)}"
    )


def encode_range(hierarchy: NameHierarchy, start: int, end: int) -> str:
    """Serialize ``hierarchy.elements[start:end]``."""
    if not 0 <= start < end <= len(hierarchy.elements):
        raise InvalidNameError(
            f"cannot serialize elements [{start}:{end}] of a {len(hierarchy)}-element name"
        )
    body = f"{_MARK}{_NAME}".join(_encode_element(e) for e in hierarchy.elements[start:end])
    return f"{_escape(hierarchy.delimiter)}{_MARK}{_META}{body}"


def encode_name(hierarchy: NameHierarchy) -> str:
    """Serialize a full name hierarchy."""
    return encode_range(hierarchy, 0, len(hierarchy.elements))


def _tokenize(serialized: str) -> list[tuple[str, str]]:
    """Split into (text, marker) pairs; the final pair has an empty marker."""
    tokens: list[tuple[str, str]] = []
    buf: list[str] = []
    i = 0
    while i < len(serialized):
        ch = serialized[i]
        if ch != _MARK:
            buf.append(ch)
            i += 1
            continue
        if i + 1 >= len(serialized):
            raise InvalidNameError(f"dangling marker in serialized name {serialized!r}")
        code = serialized[i + 1]
        if code == _LITERAL_TAB:
            buf.append(_MARK)
        elif code in (_META, _NAME, _PREFIX, _POSTFIX):
            tokens.append(("".join(buf), code))
            buf = []
        else:
            raise InvalidNameError(f"unknown marker {code!r} in serialized name {serialized!r}")
        i += 2
    tokens.append(("".join(buf), ""))
    return tokens


def decode_name(serialized: str) -> NameHierarchy:
    """Parse a serialized name back into a NameHierarchy."""
    tokens = _tokenize(serialized)
    # delimiter, then per element: name, prefix, postfix
    if (len(tokens) - 1) % 3 != 0 or len(tokens) < 4:
        raise InvalidNameError(f"malformed serialized name {serialized!r}")

    delimiter, marker = tokens[0]
    if marker != _META:
        raise InvalidNameError(f"serialized name {serialized!r} lacks a delimiter section")

    elements = []
    for i in range(1, len(tokens), 3):
        (name, after_name), (prefix, after_prefix), (postfix, after_postfix) = tokens[i : i + 3]
        last = i + 3 == len(tokens)
        expected_tail = "" if last else _NAME
        if after_name != _PREFIX or after_prefix != _POSTFIX or after_postfix != expected_tail:
            raise InvalidNameError(f"malformed serialized name {serialized!r}")
        elements.append(NameElement(name=name, prefix=prefix, postfix=postfix))

    return NameHierarchy(delimiter, tuple(elements))
