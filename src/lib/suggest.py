"""
Fuzzy "did you mean" matching

Edit distance is the classic dynamic-programming Levenshtein algorithm.
The same closestMatch_find() is used for directive names and directive
values so suggestions behave identically everywhere.
"""

from typing import Iterable, List, Optional

from ..config import appsettings


def levenshtein_distance(a: str, b: str) -> int:
    """
    Number of single-character insertions, deletions or substitutions
    needed to turn ``a`` into ``b``.

    Args:
        a: First string
        b: Second string

    Returns:
        Edit distance (0 when the strings are equal)

    Example:
        >>> levenshtein_distance("colums", "columns")
        1
        >>> levenshtein_distance("kitten", "sitting")
        3
    """
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    # Only the previous row of the DP matrix is needed
    previous: List[int] = list(range(len(a) + 1))
    for i, char_b in enumerate(b, start=1):
        current = [i]
        for j, char_a in enumerate(a, start=1):
            if char_a == char_b:
                current.append(previous[j - 1])
            else:
                current.append(min(
                    previous[j - 1] + 1,  # substitution
                    current[j - 1] + 1,   # insertion
                    previous[j] + 1,      # deletion
                ))
        previous = current

    return previous[-1]


def closestMatch_find(
    value: str,
    options: Iterable[str],
    max_distance: Optional[int] = None,
) -> Optional[str]:
    """
    Find the option closest to ``value`` within ``max_distance`` edits.

    Comparison is case-insensitive. On equal distance the earlier option
    wins, so callers control tie-breaking through option order.

    Args:
        value: User input (e.g., a mistyped directive name)
        options: Valid alternatives
        max_distance: Largest distance worth suggesting
                      (default: appsettings.suggestion_max_distance)

    Returns:
        The closest option, or None when nothing is close enough

    Example:
        >>> closestMatch_find("colums", ["columns", "page", "break", "spread"])
        'columns'
        >>> closestMatch_find("xyz", ["columns", "page", "break", "spread"]) is None
        True
    """
    if max_distance is None:
        max_distance = appsettings.suggestion_max_distance

    closest: Optional[str] = None
    best = max_distance + 1
    needle = value.lower()

    for option in options:
        distance = levenshtein_distance(needle, option.lower())
        if distance < best:
            best = distance
            closest = option

    return closest
