"""Async image analysis pipeline."""

import asyncio
import logging
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Dict, List, Optional

from ..exceptions import AnalysisTimeoutError
from ..filetree.builder import LayerBuilder
from ..filetree.efficiency import EfficiencyAnalyzer
from ..filetree.tree import LayerTree
from ..image.assembler import assemble_layers
from ..image.manifest import load_image_metadata
from ..image.result import AnalysisResult
from ..tar.models import ArchiveRecord, ScannedImage
from ..tar.reader import ImageSource, scan_image_archive
from .types import AnalysisEvent, AnalyzerConfig, EventKind, ProgressCallback, emit

logger = logging.getLogger(__name__)


class ImageAnalyzer:
    """Analyzes saved image archives for wasted layer storage."""

    def __init__(
        self,
        config: Optional[AnalyzerConfig] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> None:
        """Initialize the analyzer.

        Args:
            config: Analysis settings (deadline, worker count, ...)
            progress_callback: Optional callback receiving AnalysisEvent values
        """
        self.config = config or AnalyzerConfig()
        self.progress_callback = progress_callback
        self.efficiency = EfficiencyAnalyzer()

    async def analyze(self, source: ImageSource) -> AnalysisResult:
        """Analyze an image archive.

        Scanning and tree building run on a worker pool owned by this call.
        When the deadline expires or a step fails, the workers are told to
        stop and the pool is released without waiting for them.

        Args:
            source: Path to a saved image archive or a readable binary file object

        Returns:
            AnalysisResult for the image

        Raises:
            ArchiveReadError: If the archive cannot be read
            ArchiveFormatError: If the archive holds an unsupported header record
            ManifestError: If the manifest or config is malformed or inconsistent
            MissingLayerTreeError: If a manifest layer has no content in the archive
            AnalysisTimeoutError: If the configured deadline expires
        """
        cancel_event = threading.Event()
        executor = ThreadPoolExecutor(
            max_workers=self.config.max_workers, thread_name_prefix="image-efficiency"
        )
        try:
            return await asyncio.wait_for(
                self._analyze(source, executor, cancel_event),
                timeout=self.config.timeout,
            )
        except asyncio.TimeoutError as e:
            raise AnalysisTimeoutError(
                f"Image analysis exceeded {self.config.timeout}s deadline"
            ) from e
        finally:
            # Workers still running stop at their next record
            cancel_event.set()
            executor.shutdown(wait=False, cancel_futures=True)

    async def _analyze(
        self, source: ImageSource, executor: Executor, cancel_event: threading.Event
    ) -> AnalysisResult:
        loop = asyncio.get_running_loop()

        # The archive only supports one forward pass, so scanning is sequential
        scanned = await loop.run_in_executor(
            executor, scan_image_archive, source, self.progress_callback, cancel_event
        )
        manifest, image_config = load_image_metadata(scanned.json_files)

        tree_map = await self.build_trees(scanned, executor, cancel_event)
        layers, trees = assemble_layers(
            manifest, image_config, tree_map, self.config.short_id_length
        )
        report = self.efficiency.analyze(trees)

        result = AnalysisResult.from_report(
            layers=tuple(layers),
            trees=tuple(trees),
            report=report,
            manifest=manifest,
            config=image_config,
        )
        logger.info(
            "Analyzed %d layers: %d bytes total, %d wasted, efficiency %.4f",
            len(layers),
            result.size_bytes,
            result.wasted_bytes,
            result.efficiency_score,
        )
        emit(self.progress_callback, AnalysisEvent(kind=EventKind.ANALYSIS_DONE))
        return result

    def _build_tree(
        self,
        name: str,
        layer_number: int,
        records: List[ArchiveRecord],
        cancel_event: threading.Event,
    ) -> LayerTree:
        builder = LayerBuilder(
            name,
            layer_number=layer_number,
            progress_callback=self.progress_callback,
            progress_interval=self.config.progress_interval,
            cancel_event=cancel_event,
        )
        return builder.build(records)

    async def build_trees(
        self,
        scanned: ScannedImage,
        executor: Optional[Executor] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Dict[str, LayerTree]:
        """Build one tree per layer archive concurrently.

        Builds run in ``executor`` (the loop's default when None), at most
        ``max_workers`` at a time. The first failure sets ``cancel_event``,
        cancels the builds still pending and propagates.

        Returns:
            Trees keyed by archive entry name, layer symlinks included
        """
        loop = asyncio.get_running_loop()
        semaphore = asyncio.Semaphore(self.config.max_workers)
        if cancel_event is None:
            cancel_event = threading.Event()

        async def build_layer(
            name: str, layer_number: int, records: List[ArchiveRecord]
        ) -> LayerTree:
            async with semaphore:
                return await loop.run_in_executor(
                    executor,
                    self._build_tree,
                    name,
                    layer_number,
                    records,
                    cancel_event,
                )

        names = list(scanned.layer_records)
        tasks = [
            asyncio.ensure_future(build_layer(name, number, scanned.layer_records[name]))
            for number, name in enumerate(names, start=1)
        ]
        try:
            trees = await asyncio.gather(*tasks)
        except BaseException:
            cancel_event.set()
            for task in tasks:
                task.cancel()
            # reap cancelled and failed builds
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        tree_map = dict(zip(names, trees))
        for link in scanned.layer_links:
            target = scanned.resolve_layer_name(link)
            if target in tree_map:
                tree_map[link] = tree_map[target]
            else:
                logger.warning("Layer link %s points at missing layer %s", link, target)
        return tree_map
