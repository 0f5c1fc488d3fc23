"""
Input parsing helpers shared by the tracking commands.

Validators accept raw user text, return cleaned values, and raise domain
exceptions only when nothing usable remains.
"""

from __future__ import annotations

import re
from typing import Iterable, List

from rewardwatch.modules.shared.exceptions import InvalidInputError

_SEPARATORS = re.compile(r"[,\s]+")


def parse_id_list(raw: str) -> List[int]:
    """
    Split a comma and/or whitespace separated list of ids.

    Tokens that are not positive integers are ignored. Order is preserved and
    duplicates are removed.

    Example
    -------
    >>> parse_id_list("10206990, 7790866 abc 10206990")
    [10206990, 7790866]
    """
    seen: set[int] = set()
    ids: List[int] = []
    for token in _SEPARATORS.split(raw or ""):
        if not (token.isascii() and token.isdigit()):
            continue
        value = int(token)
        if value <= 0 or value in seen:
            continue
        seen.add(value)
        ids.append(value)
    return ids


def require_ids(raw: str) -> List[int]:
    """Like `parse_id_list` but raise `InvalidInputError` when no id survives."""
    ids = parse_id_list(raw)
    if not ids:
        raise InvalidInputError(
            "ids",
            "Please provide one or more numeric reward ids, separated by commas or spaces.",
        )
    return ids


def exclude(ids: Iterable[int], known: Iterable[int]) -> List[int]:
    """Return ``ids`` without the members of ``known``, preserving order."""
    known_set = set(known)
    return [i for i in ids if i not in known_set]
