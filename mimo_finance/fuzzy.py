"""
Fuzzy name grouping for client and partner records that lack stable ids.

Grouping is a best-effort display aid, not an identity system. The similarity
threshold and the last-name/first-initial fallback live in FuzzySettings so
they can be tuned per deployment.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Generic, Iterable, Sequence, TypeVar

from rapidfuzz.distance import Levenshtein

from mimo_finance.core import instant_sort_value

T = TypeVar("T")

DEFAULT_THRESHOLD = 0.86
EPSILON = 1e-9
NON_LETTERS_RE = re.compile(r"[^a-z\s]")


@dataclass(frozen=True)
class FuzzySettings:
    threshold: float = DEFAULT_THRESHOLD
    use_initial_fallback: bool = True


@dataclass
class NameCluster(Generic[T]):
    key: str
    display_name: str
    members: list[T] = field(default_factory=list)
    names: list[str] = field(default_factory=list)
    total: Decimal = Decimal("0.00")

    @property
    def count(self) -> int:
        return len(self.members)


def normalize_name(raw: Any) -> str:
    if raw is None:
        return ""
    text = unicodedata.normalize("NFKD", str(raw))
    text = "".join(ch for ch in text if unicodedata.category(ch) != "Mn")
    text = NON_LETTERS_RE.sub(" ", text.lower())
    return " ".join(text.split())


def title_case(text: str) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in text.split())


def name_key(raw: Any) -> str:
    """Grouping key ``"<last>|<first initial>"``; single names key on themselves."""
    parts = normalize_name(raw).split()
    if not parts:
        return ""
    if len(parts) == 1:
        return parts[0]
    return f"{parts[-1]}|{parts[0][0]}"


def similarity(a: Any, b: Any) -> float:
    left, right = normalize_name(a), normalize_name(b)
    longest = max(len(left), len(right), 1)
    return 1 - Levenshtein.distance(left, right) / longest


def meets_threshold(score: float, threshold: float = DEFAULT_THRESHOLD) -> bool:
    return score + EPSILON >= threshold


def same_last_and_initial(a: Any, b: Any) -> bool:
    left, right = normalize_name(a).split(), normalize_name(b).split()
    if len(left) < 2 or len(right) < 2:
        return False
    return left[-1] == right[-1] and left[0][0] == right[0][0]


def names_match(a: Any, b: Any, settings: FuzzySettings | None = None) -> bool:
    settings = settings or FuzzySettings()
    if meets_threshold(similarity(a, b), settings.threshold):
        return True
    return settings.use_initial_fallback and same_last_and_initial(a, b)


def representative_name(names: Sequence[str]) -> str:
    """
    Majority vote over normalized spellings, ties going to the longer raw name.
    The winner is returned title-cased.
    """
    votes: dict[str, int] = {}
    longest_raw: dict[str, str] = {}
    for raw in names:
        spelling = normalize_name(raw)
        if not spelling:
            continue
        votes[spelling] = votes.get(spelling, 0) + 1
        if len(str(raw).strip()) > len(longest_raw.get(spelling, "")):
            longest_raw[spelling] = str(raw).strip()

    winner = ""
    for spelling, count in votes.items():
        if not winner:
            winner = spelling
            continue
        best = votes[winner]
        if count > best or (count == best and len(longest_raw[spelling]) > len(longest_raw[winner])):
            winner = spelling
    return title_case(winner)


def order_by_recency(records: Iterable[T], recency_of: Callable[[T], Any] | None) -> list[T]:
    """Most recent first; records without a recency value keep input order after dated ones."""
    items = list(records)
    if recency_of is None:
        return items
    dated: list[tuple[float, T]] = []
    undated: list[T] = []
    for record in items:
        stamp = instant_sort_value(recency_of(record))
        if stamp is None:
            undated.append(record)
        else:
            dated.append((stamp, record))
    dated.sort(key=lambda pair: pair[0], reverse=True)
    return [record for _, record in dated] + undated


def cluster_names(
    records: Iterable[T],
    name_of: Callable[[T], str],
    recency_of: Callable[[T], Any] | None = None,
    amount_of: Callable[[T], Decimal] | None = None,
    settings: FuzzySettings | None = None,
) -> list[NameCluster[T]]:
    """
    Greedy single-pass clustering.

    Records are visited most recent first. Each unclustered record seeds a
    cluster and absorbs every later unclustered record whose name matches the
    seed's name.
    """
    settings = settings or FuzzySettings()
    ordered = order_by_recency(records, recency_of)
    taken = [False] * len(ordered)
    clusters: list[NameCluster[T]] = []

    for i, seed in enumerate(ordered):
        if taken[i]:
            continue
        taken[i] = True
        seed_name = name_of(seed)
        members = [seed]
        for j in range(i + 1, len(ordered)):
            if taken[j]:
                continue
            if names_match(seed_name, name_of(ordered[j]), settings):
                taken[j] = True
                members.append(ordered[j])

        names = [name_of(member) for member in members]
        display = representative_name(names)
        total = Decimal("0.00")
        if amount_of is not None:
            for member in members:
                total += amount_of(member)
        clusters.append(
            NameCluster(key=name_key(display), display_name=display, members=members, names=names, total=total)
        )
    return clusters
