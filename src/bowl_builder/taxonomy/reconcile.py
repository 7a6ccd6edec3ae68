"""Three-way merge of persisted orderings against the live set of members.

Used for the shop category order, for each category's ingredient order and
for splitting a bowl template's stored limits into active and orphaned
categories.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, Hashable, Iterable, List, Mapping, Tuple, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


def reconcile(persisted_order: Iterable[K], live: Iterable[K]) -> List[K]:
    """Resync a persisted ordering with the live members.

    Persisted members that are still live keep their relative order; live
    members the ordering has never seen are appended in the live set's own
    enumeration order. The result is a permutation of exactly ``live`` and
    reconciling it again against the same live set returns it unchanged.

    >>> reconcile(["A", "B", "C"], ["A", "C", "D"])
    ['A', 'C', 'D']
    """
    live_members = list(dict.fromkeys(live))
    live_set = set(live_members)

    synced: List[K] = []
    seen = set()
    for member in persisted_order:
        if member in live_set and member not in seen:
            synced.append(member)
            seen.add(member)
    for member in live_members:
        if member not in seen:
            synced.append(member)
            seen.add(member)
    return synced


@dataclass(frozen=True)
class Partition(Generic[K, V]):
    active: List[Tuple[K, V]] = field(default_factory=list)
    orphaned: List[Tuple[K, V]] = field(default_factory=list)

    @property
    def active_keys(self) -> List[K]:
        return [key for key, _ in self.active]

    @property
    def orphaned_keys(self) -> List[K]:
        return [key for key, _ in self.orphaned]

    def active_map(self) -> dict:
        return dict(self.active)


def partition(stored_map: Mapping[K, V], live: Iterable[K], default: Any = 0) -> Partition[K, V]:
    """Split a stored mapping into live (active) and stale (orphaned) entries.

    Stored keys that are live come first in their stored discovery order, then
    live keys missing from the map with ``default``. Orphaned entries keep
    their stored value.

    >>> p = partition({"A": 1, "B": 2}, ["A", "C"])
    >>> p.active, p.orphaned
    ([('A', 1), ('C', 0)], [('B', 2)])
    """
    live_members = list(dict.fromkeys(live))
    live_set = set(live_members)

    active: List[Tuple[K, V]] = []
    orphaned: List[Tuple[K, V]] = []
    for key, value in stored_map.items():
        if key in live_set:
            active.append((key, value))
        else:
            orphaned.append((key, value))
    present = {key for key, _ in active}
    for key in live_members:
        if key not in present:
            active.append((key, default))
    return Partition(active=active, orphaned=orphaned)


def resync_limits(existing_limits: Mapping[str, int], categories: Iterable[str]) -> dict:
    """Limits keyed by exactly ``categories`` (in that order), zero where unset.

    >>> resync_limits({"Base": 2, "Protein": 1, "Legacy": 5}, ["Base", "Protein", "Topping"])
    {'Base': 2, 'Protein': 1, 'Topping': 0}
    """
    return {category: existing_limits.get(category, 0) for category in dict.fromkeys(categories)}
