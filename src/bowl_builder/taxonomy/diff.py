"""Added/removed members between two versions of a category vocabulary."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List


@dataclass(frozen=True)
class TaxonomyDiff:
    added: List[str]
    removed: List[str]

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)


def diff_taxonomy(old: Iterable[str], new: Iterable[str]) -> TaxonomyDiff:
    """Return ``added = new - old`` and ``removed = old - new``.

    Members keep their enumeration order in the result only so log lines read
    naturally; the result is a pair of sets in meaning.
    """
    old = list(dict.fromkeys(old))
    new = list(dict.fromkeys(new))
    old_set = set(old)
    new_set = set(new)
    return TaxonomyDiff(
        added=[category for category in new if category not in old_set],
        removed=[category for category in old if category not in new_set],
    )
