"""Image Efficiency - wasted storage analysis for saved container images."""

__version__ = "0.1.0"

from .analyze import analyze_image, analyze_image_sync
from .core.analyzer import ImageAnalyzer
from .core.types import AnalysisEvent, AnalyzerConfig, EventKind
from .exceptions import (
    AnalysisCancelledError,
    AnalysisTimeoutError,
    ArchiveFormatError,
    ArchiveReadError,
    ImageAnalysisError,
    LayerConsistencyError,
    ManifestError,
    ManifestMismatchError,
    MissingLayerTreeError,
)
from .filetree.efficiency import DuplicatePath, EfficiencyAnalyzer
from .filetree.models import FileKind, FileRecord
from .filetree.tree import LayerTree, stack_trees
from .image.layer import Layer
from .image.result import AnalysisResult
from .utils.report import load_report, save_report

__all__ = [
    "analyze_image",
    "analyze_image_sync",
    "save_report",
    "load_report",
    "ImageAnalyzer",
    "AnalyzerConfig",
    "AnalysisEvent",
    "EventKind",
    "AnalysisResult",
    "Layer",
    "LayerTree",
    "stack_trees",
    "FileRecord",
    "FileKind",
    "DuplicatePath",
    "EfficiencyAnalyzer",
    "ImageAnalysisError",
    "ArchiveReadError",
    "ArchiveFormatError",
    "ManifestError",
    "ManifestMismatchError",
    "MissingLayerTreeError",
    "LayerConsistencyError",
    "AnalysisTimeoutError",
    "AnalysisCancelledError",
]
