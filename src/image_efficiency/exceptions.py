"""Custom exceptions for image layer analysis."""


class ImageAnalysisError(Exception):
    """Base exception for all image analysis errors."""

    pass


class ArchiveReadError(ImageAnalysisError):
    """Raised when the image archive cannot be opened or is truncated."""

    pass


class ArchiveFormatError(ImageAnalysisError):
    """Raised when an archive record has an unsupported header type."""

    pass


class ManifestError(ImageAnalysisError):
    """Raised when manifest.json or the image config cannot be parsed."""

    pass


class ManifestMismatchError(ManifestError):
    """Raised when the manifest and config history disagree."""

    pass


class MissingLayerTreeError(ImageAnalysisError):
    """Raised when a manifest layer path has no built tree."""

    pass


class LayerConsistencyError(ImageAnalysisError):
    """Raised when an assembled layer is paired with the wrong tree."""

    pass


class AnalysisTimeoutError(ImageAnalysisError):
    """Raised when the analysis exceeds its deadline."""

    pass


class AnalysisCancelledError(ImageAnalysisError):
    """Raised inside a worker when its analysis was abandoned."""

    pass
