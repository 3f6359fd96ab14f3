"""Sequential reader for saved image archives."""

import logging
import posixpath
import tarfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Iterable, Iterator, List, Optional, Union

from ..core.types import (
    AnalysisEvent,
    EventKind,
    ProgressCallback,
    check_cancelled,
    emit,
)
from ..exceptions import ArchiveFormatError, ArchiveReadError
from .models import ArchiveRecord, ScannedImage

logger = logging.getLogger(__name__)

ImageSource = Union[str, Path, IO[bytes]]

# Archive read failures surface from tarfile, the decompressors and the OS
READ_ERRORS = (tarfile.TarError, OSError, EOFError)


@contextmanager
def open_image_archive(source: ImageSource) -> Iterator[tarfile.TarFile]:
    """Open a saved image archive for one forward-only pass.

    Args:
        source: Path to the archive or a readable binary file object.
            Compressed archives (gzip, bz2, xz) are detected automatically.

    Yields:
        TarFile opened in stream mode

    Raises:
        ArchiveReadError: If the archive cannot be opened
    """
    if isinstance(source, (str, Path)):
        if not Path(source).exists():
            raise ArchiveReadError(f"Image archive not found: {source}")
        try:
            fileobj: IO[bytes] = open(source, "rb")
        except OSError as e:
            raise ArchiveReadError(f"Cannot open image archive {source}: {e}") from e
        close_source = True
    else:
        fileobj = source
        close_source = False

    try:
        try:
            tar = tarfile.open(fileobj=fileobj, mode="r|*")
        except READ_ERRORS as e:
            raise ArchiveReadError(f"Cannot read image archive: {e}") from e
        try:
            yield tar
        finally:
            tar.close()
    finally:
        if close_source:
            fileobj.close()


def iter_records(tar: tarfile.TarFile) -> Iterator[ArchiveRecord]:
    """Yield one record per archive member, in archive order.

    A record's stream is only valid until the next record is requested.

    Raises:
        ArchiveReadError: If the archive is corrupt or ends early
    """
    members = iter(tar)
    while True:
        try:
            member = next(members)
        except StopIteration:
            return
        except READ_ERRORS as e:
            raise ArchiveReadError(f"Failed to read archive entry: {e}") from e

        stream = tar.extractfile(member) if member.isfile() else None
        yield ArchiveRecord.from_tarinfo(member, stream)


def read_layer_records(stream: IO[bytes]) -> List[ArchiveRecord]:
    """Read every member header of a nested layer archive.

    Contents are skipped; only the header fields are kept.

    Raises:
        ArchiveReadError: If the layer archive is corrupt or truncated
    """
    try:
        with tarfile.open(fileobj=stream, mode="r|") as layer_tar:
            return [ArchiveRecord.from_tarinfo(member) for member in layer_tar]
    except READ_ERRORS as e:
        raise ArchiveReadError(f"Failed to read layer archive: {e}") from e


def scan_records(
    records: Iterable[ArchiveRecord],
    progress_callback: Optional[ProgressCallback] = None,
    cancel_event: Optional[threading.Event] = None,
) -> ScannedImage:
    """Collect JSON documents and layer records from top-level archive records.

    Only regular files and symlinks are considered. ``*.json`` files are kept
    by name; each ``layer.tar`` is read to completion before the next record.
    A ``layer.tar`` symlink is recorded as an alias of its target. The scan
    stops before the next record once ``cancel_event`` is set.

    Raises:
        ArchiveFormatError: If a top-level record is an extended header
        ArchiveReadError: If a layer archive cannot be read
        AnalysisCancelledError: If ``cancel_event`` was set
    """
    scanned = ScannedImage()
    emit(progress_callback, AnalysisEvent(kind=EventKind.SCAN_STARTED))

    for record in records:
        check_cancelled(cancel_event, "Archive scan")
        if record.header_name is not None:
            raise ArchiveFormatError(
                f"Image archive entry '{record.path}' has unexpected header "
                f"'{record.type.decode('ascii', 'replace')}' ({record.header_name})"
            )

        if not (record.is_regular or record.is_symlink):
            continue

        if record.is_layer_archive:
            if record.is_symlink:
                target = posixpath.normpath(
                    posixpath.join(posixpath.dirname(record.path), record.link_target)
                )
                scanned.layer_links[record.path] = target
                logger.debug("Layer %s links to %s", record.path, target)
                continue

            if record.stream is None:
                raise ArchiveReadError(f"Could not extract layer {record.path}")
            if record.size == 0:
                layer_records = []
            else:
                layer_records = read_layer_records(record.stream)
            scanned.layer_records[record.path] = layer_records
            emit(
                progress_callback,
                AnalysisEvent(
                    kind=EventKind.LAYER_SCANNED,
                    layer_name=record.path,
                    layer_number=len(scanned.layer_records),
                    records=len(layer_records),
                ),
            )
        elif record.path.endswith(".json") and record.is_regular:
            if record.stream is None:
                raise ArchiveReadError(f"Could not extract {record.path}")
            try:
                scanned.json_files[record.path] = record.stream.read()
            except READ_ERRORS as e:
                raise ArchiveReadError(f"Failed to extract {record.path}: {e}") from e
        else:
            logger.debug("Skipping archive entry %s", record.path)

    return scanned


def scan_image_archive(
    source: ImageSource,
    progress_callback: Optional[ProgressCallback] = None,
    cancel_event: Optional[threading.Event] = None,
) -> ScannedImage:
    """Read a saved image archive in a single sequential pass.

    Args:
        source: Path to the archive or a readable binary file object
        progress_callback: Optional callback receiving scan events
        cancel_event: Optional flag that abandons the scan once set

    Returns:
        ScannedImage with JSON documents and per-layer records

    Raises:
        ArchiveReadError: If the archive cannot be read
        ArchiveFormatError: If the archive holds an unsupported header record
    """
    with open_image_archive(source) as tar:
        return scan_records(iter_records(tar), progress_callback, cancel_event)
