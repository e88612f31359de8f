"""
Text matching helpers shared by the validator and both compiler backends.

Name and path comparisons follow SQLite semantics exactly: LOWER() folds
ASCII letters only, and LIKE patterns use `%`, `_` and a backslash escape.
The in-memory backend relies on these helpers to agree with the storage
engine byte for byte.
"""

import re
from typing import Pattern


LIKE_ESCAPE = '\\'

_ASCII_LOWER = str.maketrans('ABCDEFGHIJKLMNOPQRSTUVWXYZ', 'abcdefghijklmnopqrstuvwxyz')


def ascii_lower(text: str) -> str:
    """Lower-case ASCII letters only, like SQLite's LOWER()."""
    return text.translate(_ASCII_LOWER)


def escape_like(text: str) -> str:
    """Escape LIKE metacharacters so `text` matches literally."""
    return (
        text.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace('%', LIKE_ESCAPE + '%')
        .replace('_', LIKE_ESCAPE + '_')
    )


def glob_to_like(glob: str) -> str:
    """
    Translate a user glob into a LIKE pattern.

    `*` becomes `%` and `?` becomes `_`; literal `%`, `_` and backslashes
    in the user text are escaped first.

    Args:
        glob: Glob pattern as typed by the user

    Returns:
        Equivalent LIKE pattern using a backslash escape
    """
    parts = []
    for ch in glob:
        if ch == '*':
            parts.append('%')
        elif ch == '?':
            parts.append('_')
        else:
            parts.append(escape_like(ch))
    return ''.join(parts)


def like_to_regex(pattern: str) -> Pattern[str]:
    """
    Compile a LIKE pattern to an anchored regular expression.

    Args:
        pattern: LIKE pattern with backslash escapes

    Returns:
        Regex that fully matches exactly the strings LIKE would accept
    """
    parts = []
    chars = iter(pattern)
    for ch in chars:
        if ch == LIKE_ESCAPE:
            escaped = next(chars, LIKE_ESCAPE)
            parts.append(re.escape(escaped))
        elif ch == '%':
            parts.append('.*')
        elif ch == '_':
            parts.append('.')
        else:
            parts.append(re.escape(ch))
    return re.compile(''.join(parts), re.DOTALL)


def like_matches(pattern: str, text: str) -> bool:
    """Case-sensitive LIKE match of `text` against `pattern`."""
    return like_to_regex(pattern).fullmatch(text) is not None


def file_name(path: str) -> str:
    """Final path component, accepting both `/` and `\\` separators."""
    cut = max(path.rfind('/'), path.rfind('\\'))
    return path[cut + 1:]


def has_glob_wildcards(text: str) -> bool:
    return '*' in text or '?' in text
