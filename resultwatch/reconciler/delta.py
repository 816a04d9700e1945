"""Delta engine: which observed items are new since the last pass."""

from collections.abc import Sequence

from ..models import ObservedItem

# Items whose texts agree on this many leading characters count as the same
PREFIX_MATCH_LENGTH = 50


def is_same_item(previous: ObservedItem, current: ObservedItem) -> bool:
    """Heuristic match: identical text, or identical first 50 characters.

    Two distinct notifications sharing their first 50 characters are
    treated as one. Portal noise that only differs in a trailing
    timestamp or counter is suppressed the same way.
    """
    if previous.text == current.text:
        return True
    if not previous.text or not current.text:
        return False
    return previous.text[:PREFIX_MATCH_LENGTH] == current.text[:PREFIX_MATCH_LENGTH]


def diff(
    previous: Sequence[ObservedItem] | None,
    current: Sequence[ObservedItem],
) -> list[ObservedItem]:
    """Return the items of ``current`` with no match in ``previous``.

    ``previous is None`` means the account has never been observed: every
    current item is taken as pre-existing, so a cold start never reports
    anything as new. An empty ``previous`` is a real observation of zero
    items, and then everything current is new.
    """
    if previous is None:
        return []
    return [
        item
        for item in current
        if not any(is_same_item(seen, item) for seen in previous)
    ]
