"""The single output object of an image analysis."""

from dataclasses import dataclass, field
from typing import Optional, Tuple

from ..filetree.efficiency import DuplicatePath, EfficiencyReport
from ..filetree.tree import LayerTree, stack_trees
from .layer import Layer
from .manifest import ImageConfig, ManifestModel


@dataclass(frozen=True)
class AnalysisResult:
    """Layers, trees and wasted byte accounting for one image."""

    layers: Tuple[Layer, ...]  # ordered by index, newest first
    trees: Tuple[LayerTree, ...] = field(repr=False)  # chronological
    efficiency_score: float
    wasted_bytes: int
    size_bytes: int
    user_size_bytes: int
    duplicate_paths: Tuple[DuplicatePath, ...] = field(repr=False)
    manifest: Optional[ManifestModel] = field(default=None, repr=False)
    config: Optional[ImageConfig] = field(default=None, repr=False)

    @classmethod
    def from_report(
        cls,
        layers: Tuple[Layer, ...],
        trees: Tuple[LayerTree, ...],
        report: EfficiencyReport,
        manifest: Optional[ManifestModel] = None,
        config: Optional[ImageConfig] = None,
    ) -> "AnalysisResult":
        return cls(
            layers=tuple(layers),
            trees=tuple(trees),
            efficiency_score=report.efficiency_score,
            wasted_bytes=report.wasted_bytes,
            size_bytes=report.size_bytes,
            user_size_bytes=report.user_size_bytes,
            duplicate_paths=report.duplicate_paths,
            manifest=manifest,
            config=config,
        )

    @property
    def wasted_user_percent(self) -> float:
        if self.user_size_bytes == 0:
            return 0.0
        return self.wasted_bytes / self.user_size_bytes

    @property
    def base_layer(self) -> Optional[Layer]:
        return self.layers[-1] if self.layers else None

    def squashed_tree(self, through_index: int = 0) -> LayerTree:
        """Merged filesystem as seen after applying layers down to ``through_index``.

        ``through_index=0`` gives the final image; the base layer's index
        gives the base filesystem alone.
        """
        if not self.layers:
            return stack_trees([])
        if not 0 <= through_index < len(self.layers):
            raise IndexError(f"Layer index {through_index} out of range")
        count = len(self.trees)
        return stack_trees(self.trees[: count - through_index])

    def to_dict(self) -> dict:
        """JSON-ready representation of the result."""
        return {
            "image": self.manifest.to_dict() if self.manifest else None,
            "config": self.config.to_dict() if self.config else None,
            "layers": [layer.to_dict() for layer in self.layers],
            "trees": [tree.name for tree in self.trees],
            "efficiency_score": self.efficiency_score,
            "wasted_bytes": self.wasted_bytes,
            "size_bytes": self.size_bytes,
            "user_size_bytes": self.user_size_bytes,
            "wasted_user_percent": self.wasted_user_percent,
            "duplicate_paths": [d.to_dict() for d in self.duplicate_paths],
        }
