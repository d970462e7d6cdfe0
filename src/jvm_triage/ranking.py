"""Weighted label rankings for hotspot tables (methods, classes, monitors)."""

from __future__ import annotations

import heapq
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict


class RankedEntry(NamedTuple):
    label: str
    weight: int


def _rank_key(item: tuple[str, int]) -> tuple[int, str]:
    # Heaviest first; equal weights fall back to ascending label.
    return -item[1], item[0]


class RankedLabels(BaseModel):
    """Finalized, immutable ranking snapshot."""

    model_config = ConfigDict(frozen=True)

    entries: tuple[RankedEntry, ...] = ()
    total_weight: int = 0
    distinct_labels: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.entries

    @property
    def max_weight(self) -> int:
        return self.entries[0].weight if self.entries else 0

    def top_n(self, k: int) -> list[RankedEntry]:
        """Return up to ``k`` entries, heaviest first, ties by ascending label."""
        if k <= 0:
            return []
        return list(self.entries[:k])


class TopKRanking:
    """Accumulates weight per label and ranks labels by total weight.

    Every distinct label keeps one exact counter, so memory grows with label
    cardinality, never with the number of observations, and the ranking is
    independent of the order in which observations arrive.
    """

    def __init__(self) -> None:
        self._weights: dict[str, int] = {}
        self._total_weight = 0
        self._finalized: RankedLabels | None = None

    def __len__(self) -> int:
        return len(self._weights)

    def record(self, label: str, weight: int = 1) -> None:
        """Add ``weight`` to the running total for ``label``."""
        if self._finalized is not None:
            raise RuntimeError("ranking already finalized")
        if weight < 0:
            raise ValueError(f"weight must be non-negative, got {weight}")

        self._total_weight += weight
        self._weights[label] = self._weights.get(label, 0) + weight

    def top_n(self, k: int) -> list[RankedEntry]:
        """Current top ``k`` entries; available before and after finalization."""
        if self._finalized is not None:
            return self._finalized.top_n(k)
        if k <= 0:
            return []
        return [
            RankedEntry(label, weight)
            for label, weight in heapq.nsmallest(k, self._weights.items(), key=_rank_key)
        ]

    def finalize(self) -> RankedLabels:
        """Freeze the ranking; further ``record`` calls raise."""
        if self._finalized is None:
            ordered = sorted(self._weights.items(), key=_rank_key)
            self._finalized = RankedLabels(
                entries=tuple(RankedEntry(label, weight) for label, weight in ordered),
                total_weight=self._total_weight,
                distinct_labels=len(ordered),
            )
            self._weights = {}
        return self._finalized
