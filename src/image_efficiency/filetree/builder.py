"""Build a layer file tree from the records of one layer archive."""

import logging
import threading
from typing import Iterable, Optional

from ..core.types import (
    AnalysisEvent,
    EventKind,
    ProgressCallback,
    check_cancelled,
    emit,
)
from ..exceptions import ArchiveFormatError
from ..tar.models import ArchiveRecord
from .models import FileRecord
from .tree import LayerTree

logger = logging.getLogger(__name__)


def check_record_header(record: ArchiveRecord) -> None:
    """Reject records whose header class cannot describe a file.

    Raises:
        ArchiveFormatError: If the record is a global or per-file extended header
    """
    header_name = record.header_name
    if header_name is not None:
        raise ArchiveFormatError(
            f"Provided tar file '{record.path}' has unexpected header "
            f"'{record.type.decode('ascii', 'replace')}' ({header_name})"
        )


class LayerBuilder:
    """Turns the ordered records of one ``layer.tar`` into a frozen LayerTree."""

    def __init__(
        self,
        name: str,
        layer_number: int = 0,
        progress_callback: Optional[ProgressCallback] = None,
        progress_interval: int = 1000,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        """Initialize the builder.

        Args:
            name: Archive entry name of the layer (e.g. "abc123/layer.tar")
            layer_number: 1-based position of the layer in archive order
            progress_callback: Optional callback receiving build events
            progress_interval: Emit a progress event every N records
            cancel_event: Optional flag that abandons the build once set
        """
        self.name = name
        self.layer_number = layer_number
        self.progress_callback = progress_callback
        self.progress_interval = progress_interval
        self.cancel_event = cancel_event
        self._tree = LayerTree(name)
        self._records = 0

    def _event(self, kind: EventKind) -> AnalysisEvent:
        return AnalysisEvent(
            kind=kind,
            layer_name=self.name,
            layer_number=self.layer_number,
            records=self._records,
        )

    def add_record(self, record: ArchiveRecord) -> None:
        """Classify one archive record and insert it into the tree.

        Raises:
            ArchiveFormatError: If the record has an extended header type
            AnalysisCancelledError: If the build was cancelled
        """
        check_cancelled(self.cancel_event, f"Build of layer {self.name}")
        check_record_header(record)
        self._tree.add(
            FileRecord.from_header(
                record.path, record.type, record.size, record.link_target
            )
        )
        self._records += 1
        if self._records % self.progress_interval == 0:
            emit(self.progress_callback, self._event(EventKind.LAYER_PROGRESS))

    def build(self, records: Iterable[ArchiveRecord]) -> LayerTree:
        """Consume every record and return the frozen tree.

        Raises:
            ArchiveFormatError: If any record has an extended header type
        """
        emit(self.progress_callback, self._event(EventKind.LAYER_STARTED))
        logger.debug("Building tree for layer %d (%s)", self.layer_number, self.name)

        for record in records:
            self.add_record(record)

        tree = self._tree.freeze()
        logger.debug(
            "Layer %d (%s): %d entries, %d bytes",
            self.layer_number,
            self.name,
            len(tree),
            tree.total_size(),
        )
        emit(self.progress_callback, self._event(EventKind.LAYER_DONE))
        return tree


def build_layer_tree(name: str, records: Iterable[ArchiveRecord]) -> LayerTree:
    """Build a layer tree without progress reporting."""
    return LayerBuilder(name).build(records)
