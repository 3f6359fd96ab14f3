"""Cross-layer wasted byte accounting."""

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from .tree import LayerTree


@dataclass(frozen=True)
class DuplicatePath:
    """A path written as a regular file by more than one layer.

    ``occurrences`` holds ``(layer_position, size)`` pairs in chronological
    order; the last one is the copy that survives in the flattened image.
    """

    path: str
    cumulative_wasted_size: int
    occurrences: Tuple[Tuple[int, int], ...] = field(default=())

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "cumulative_wasted_size": self.cumulative_wasted_size,
            "occurrences": [list(occurrence) for occurrence in self.occurrences],
        }


@dataclass(frozen=True)
class EfficiencyReport:
    """Result of comparing every layer tree of an image."""

    efficiency_score: float
    wasted_bytes: int
    size_bytes: int
    user_size_bytes: int
    duplicate_paths: Tuple[DuplicatePath, ...]

    @property
    def wasted_user_percent(self) -> float:
        """Wasted bytes as a fraction of the user-attributable size."""
        if self.user_size_bytes == 0:
            return 0.0
        return self.wasted_bytes / self.user_size_bytes


class EfficiencyAnalyzer:
    """Finds redundant same-path writes across chronologically ordered trees."""

    def collect_occurrences(
        self, trees: Sequence[LayerTree]
    ) -> Dict[str, List[Tuple[int, int]]]:
        """Map each path to its regular-file ``(layer_position, size)`` writes."""
        occurrences: Dict[str, List[Tuple[int, int]]] = {}
        for position, tree in enumerate(trees):
            for path, record in tree.walk():
                # whiteouts and directories occupy no bytes
                if not record.is_regular:
                    continue
                occurrences.setdefault(path, []).append((position, record.size))
        return occurrences

    def find_duplicates(self, trees: Sequence[LayerTree]) -> List[DuplicatePath]:
        """Return paths with wasted bytes, largest waste first."""
        duplicates = []
        for path, writes in self.collect_occurrences(trees).items():
            if len(writes) < 2:
                continue
            # the highest layer's copy is kept
            wasted = sum(size for _, size in writes[:-1])
            if wasted == 0:
                continue
            duplicates.append(
                DuplicatePath(
                    path=path,
                    cumulative_wasted_size=wasted,
                    occurrences=tuple(writes),
                )
            )
        duplicates.sort(key=lambda d: (-d.cumulative_wasted_size, d.path))
        return duplicates

    def analyze(self, trees: Sequence[LayerTree]) -> EfficiencyReport:
        """Compute wasted bytes and the efficiency score.

        The first tree is the base image; its bytes count toward ``size_bytes``
        but not ``user_size_bytes``.
        """
        duplicates = self.find_duplicates(trees)
        wasted_bytes = sum(d.cumulative_wasted_size for d in duplicates)

        sizes = [tree.total_size() for tree in trees]
        size_bytes = sum(sizes)
        user_size_bytes = sum(sizes[1:])

        if user_size_bytes > 0:
            score = 1.0 - wasted_bytes / user_size_bytes
            score = min(1.0, max(0.0, score))
        else:
            score = 1.0

        return EfficiencyReport(
            efficiency_score=score,
            wasted_bytes=wasted_bytes,
            size_bytes=size_bytes,
            user_size_bytes=user_size_bytes,
            duplicate_paths=tuple(duplicates),
        )
