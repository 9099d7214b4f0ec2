"""Task identifier tokens: ``[PREFIX-12]``.

The token is the join key between Asana task titles and GitLab commit
messages. It is recognised with a tiny hand-written grammar instead of a
regex::

    token  = "[" prefix "-" digits "]"
    prefix = 1*( any char except "[", "]" or whitespace )
    digits = 1*( "0".."9" )

A prefix may contain ``-`` itself; the last ``-`` splits off the number.
"""

from __future__ import annotations

from typing import NamedTuple, Optional

_DIGITS = frozenset("0123456789")


class TaskToken(NamedTuple):
    token: str
    prefix: str
    number: int


def _parse_at(text: str, start: int) -> Optional[TaskToken]:
    """Parse a token whose opening bracket sits at ``text[start]``."""
    end = text.find("]", start + 1)
    if end == -1:
        return None
    inner = text[start + 1 : end]
    if "[" in inner:
        return None
    prefix, sep, digits = inner.rpartition("-")
    if not sep or not prefix or not digits:
        return None
    if not set(digits) <= _DIGITS:
        return None
    if any(ch.isspace() for ch in prefix):
        return None
    return TaskToken(text[start : end + 1], prefix, int(digits))


def extract(text: str | None, anchored: bool = False) -> Optional[TaskToken]:
    """
    Find a task token in ``text``.

    ``anchored=True`` only accepts a token at the very start (title checks);
    otherwise the first well-formed token anywhere wins (commit messages).
    Returns None when nothing matches.
    """
    if not text:
        return None
    if anchored:
        return _parse_at(text, 0) if text.startswith("[") else None

    pos = text.find("[")
    while pos != -1:
        found = _parse_at(text, pos)
        if found:
            return found
        pos = text.find("[", pos + 1)
    return None


def make_token(prefix: str, number: int) -> str:
    return f"[{prefix}-{number}]"


def valid_prefix(prefix: str) -> bool:
    """True when tokens built from ``prefix`` parse back to the same prefix."""
    found = extract(make_token(prefix, 1), anchored=True)
    return bool(found and found.prefix == prefix)


def embed(text: str, token: str) -> str:
    """Prefix ``text`` with ``token``. Caller checks there is no token yet."""
    return f"{token} {text}"


def has_token(token: str, title: str | None) -> bool:
    """True when ``title`` starts with exactly ``token``."""
    found = extract(title, anchored=True)
    return bool(found and found.token == token)
