"""Result lines and "did you mean" suggestions.

Batch results are one line per command, marked ``+`` when the command ran and
``!`` when it failed. Unknown type, field, member and command names are
answered with the closest registered spelling.
"""

from __future__ import annotations

import difflib
from collections.abc import Iterable


def format_result(success: bool, message: str) -> str:
    """Mark *message* as a success (``+``) or failure (``!``) line."""
    return f"{'+' if success else '!'} {message}"


def suggest(input_str: str, candidates: Iterable[str]) -> str | None:
    """Find the closest match for *input_str* among *candidates*.

    Matching is case-insensitive since every command token is. Returns the
    best candidate (original spelling) if the similarity ratio is above 0.6,
    otherwise None.
    """
    by_folded: dict[str, str] = {}
    for candidate in candidates:
        by_folded.setdefault(candidate.casefold(), candidate)
    if not by_folded:
        return None
    matches = difflib.get_close_matches(
        input_str.casefold(), list(by_folded), n=1, cutoff=0.6
    )
    return by_folded[matches[0]] if matches else None


def did_you_mean(input_str: str, candidates: Iterable[str]) -> str:
    """Return ``" Did you mean 'x'?"`` or an empty string."""
    match = suggest(input_str, candidates)
    return f" Did you mean '{match}'?" if match else ""
