"""Fuzzy matching used to suggest field names and field values after a typo."""

from collections.abc import Iterable
import math

from ticketnorm.constants import MAX_SUGGESTIONS, SUGGESTION_DISTANCE_RATIO, SUGGESTION_MIN_DISTANCE


def levenshtein_distance(a: str, b: str) -> int:
    """Number of single-character insertions, deletions and substitutions needed to turn `a` into `b`."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous_row = list(range(len(a) + 1))
    for i, b_char in enumerate(b, start=1):
        current_row = [i]
        for j, a_char in enumerate(a, start=1):
            if a_char == b_char:
                current_row.append(previous_row[j - 1])
            else:
                current_row.append(
                    min(
                        previous_row[j - 1] + 1,
                        current_row[j - 1] + 1,
                        previous_row[j] + 1,
                    )
                )
        previous_row = current_row
    return previous_row[-1]


def max_suggestion_distance(query: str) -> int:
    return max(SUGGESTION_MIN_DISTANCE, math.ceil(len(query) * SUGGESTION_DISTANCE_RATIO))


def find_similar(
    query: str, candidates: Iterable[str], max_suggestions: int = MAX_SUGGESTIONS
) -> list[str]:
    """Find the candidates closest to `query`.

    The comparison is case-insensitive. Only candidates within `max_suggestion_distance(query)` edits are kept. The
    result is sorted by ascending distance; candidates at the same distance keep their original order.

    Args:
        query: the string typed by the user.
        candidates: the strings to compare against, e.g. field display names.
        max_suggestions: the maximum number of suggestions to return.

    Returns:
        Up to `max_suggestions` candidates, closest first.
    """
    query_lower = query.lower()
    bound = max_suggestion_distance(query)
    scored: list[tuple[int, str]] = []
    for candidate in candidates:
        distance = levenshtein_distance(query_lower, candidate.lower())
        if distance <= bound:
            scored.append((distance, candidate))

    scored.sort(key=lambda item: item[0])
    return [candidate for _, candidate in scored[:max_suggestions]]


def rank_by_similarity(
    query: str, candidates: Iterable[str], max_suggestions: int = MAX_SUGGESTIONS
) -> list[str]:
    """Like `find_similar` but without a distance bound: the closest candidates are returned however far they are."""
    query_lower = query.lower()
    scored = [(levenshtein_distance(query_lower, candidate.lower()), candidate) for candidate in candidates]
    scored.sort(key=lambda item: item[0])
    return [candidate for _, candidate in scored[:max_suggestions]]
