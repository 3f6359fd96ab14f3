"""Async functional analysis operations."""

import asyncio
from typing import Optional

from .core.analyzer import ImageAnalyzer
from .core.types import DEFAULT_MAX_WORKERS, AnalyzerConfig, ProgressCallback
from .image.result import AnalysisResult
from .tar.reader import ImageSource


async def analyze_image(
    source: ImageSource,
    timeout: Optional[float] = None,
    max_workers: int = DEFAULT_MAX_WORKERS,
    progress_callback: Optional[ProgressCallback] = None,
) -> AnalysisResult:
    """Analyze a saved image archive for wasted layer storage.

    Args:
        source: Archive produced by ``docker save``
            - Path: "nginx.tar", Path("./exports/app.tar.gz")
            - Binary file object positioned at the start of the archive
        timeout: Deadline for the whole analysis in seconds (None: no deadline)
        max_workers: Maximum number of layer trees built concurrently
        progress_callback: Optional callback receiving AnalysisEvent values

    Returns:
        AnalysisResult: layers (newest first), chronological trees, wasted
        bytes and efficiency score

    Raises:
        ImageAnalysisError: If the archive is unreadable or inconsistent
        AnalysisTimeoutError: If the deadline expires

    Examples:
        result = await analyze_image("nginx.tar")
        print(f"Efficiency: {result.efficiency_score:.2%}")
        for layer in result.layers:
            print(layer)
    """
    config = AnalyzerConfig(timeout=timeout, max_workers=max_workers)
    analyzer = ImageAnalyzer(config, progress_callback)
    return await analyzer.analyze(source)


def analyze_image_sync(
    source: ImageSource,
    timeout: Optional[float] = None,
    max_workers: int = DEFAULT_MAX_WORKERS,
    progress_callback: Optional[ProgressCallback] = None,
) -> AnalysisResult:
    """Blocking wrapper around ``analyze_image`` for callers without an event loop."""
    return asyncio.run(
        analyze_image(
            source,
            timeout=timeout,
            max_workers=max_workers,
            progress_callback=progress_callback,
        )
    )
