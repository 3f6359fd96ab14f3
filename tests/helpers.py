"""Helpers for building synthetic image archives in memory."""

import io
import json
import posixpath
import tarfile
from typing import Iterable, List, Optional, Sequence, Tuple

from image_efficiency.tar.models import ArchiveRecord

Entry = Tuple[tarfile.TarInfo, bytes]


def file_entry(name: str, size: int = 0, data: Optional[bytes] = None) -> Entry:
    """Regular file entry; content defaults to ``size`` filler bytes."""
    content = data if data is not None else b"x" * size
    info = tarfile.TarInfo(name)
    info.size = len(content)
    return info, content


def dir_entry(name: str) -> Entry:
    info = tarfile.TarInfo(name)
    info.type = tarfile.DIRTYPE
    info.mode = 0o755
    return info, b""


def symlink_entry(name: str, target: str) -> Entry:
    info = tarfile.TarInfo(name)
    info.type = tarfile.SYMTYPE
    info.linkname = target
    return info, b""


def whiteout_entry(path: str) -> Entry:
    """Deletion marker for ``path`` (e.g. "bin/sh" -> "bin/.wh.sh")."""
    parent, name = posixpath.split(path)
    return file_entry(posixpath.join(parent, f".wh.{name}"))


def build_tar(entries: Iterable[Entry], mode: str = "w") -> bytes:
    """Serialize entries into a tar archive."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode=mode) as tar:
        for info, content in entries:
            tar.addfile(info, fileobj=io.BytesIO(content) if content else None)
    return buffer.getvalue()


def history_entry(created_by: str, empty_layer: bool = False) -> dict:
    entry = {"created": "2024-01-01T00:00:00Z", "created_by": created_by}
    if empty_layer:
        entry["empty_layer"] = True
    return entry


def build_image_archive(
    layers: Sequence[Tuple[str, List[Entry]]],
    history: Optional[List[dict]] = None,
    diff_ids: Optional[List[str]] = None,
    manifest_layers: Optional[List[str]] = None,
    config_path: str = "abc123config.json",
    extra_entries: Sequence[Entry] = (),
    repo_tags: Sequence[str] = ("test/image:latest",),
    mode: str = "w",
) -> bytes:
    """Build a ``docker save`` style archive.

    Args:
        layers: ``(layer tar path, entries)`` in chronological order
        history: Config history; defaults to one non-empty entry per layer
        diff_ids: Config diff ids; defaults to one per layer
        manifest_layers: Manifest Layers list; defaults to the layer paths
        config_path: Archive path of the config document
        extra_entries: Additional top-level entries appended before the manifest
        repo_tags: RepoTags for manifest.json
        mode: tarfile write mode (e.g. "w:gz")
    """
    layer_paths = [path for path, _ in layers]
    if history is None:
        history = [history_entry(f"/bin/sh -c #(nop) ADD layer {i}") for i in range(len(layers))]
    if diff_ids is None:
        diff_ids = [f"sha256:{i:064x}" for i in range(1, len(layers) + 1)]

    config = {
        "architecture": "amd64",
        "os": "linux",
        "created": "2024-01-01T00:00:00Z",
        "history": history,
        "rootfs": {"type": "layers", "diff_ids": diff_ids},
    }
    manifest = [
        {
            "Config": config_path,
            "RepoTags": list(repo_tags),
            "Layers": manifest_layers if manifest_layers is not None else layer_paths,
        }
    ]

    entries: List[Entry] = []
    for path, layer_entries in layers:
        entries.append(dir_entry(posixpath.dirname(path)))
        entries.append(file_entry(path, data=build_tar(layer_entries)))
    entries.append(file_entry(config_path, data=json.dumps(config).encode("utf-8")))
    entries.extend(extra_entries)
    entries.append(
        file_entry("manifest.json", data=json.dumps(manifest).encode("utf-8"))
    )
    return build_tar(entries, mode=mode)


def reg(path: str, size: int) -> ArchiveRecord:
    """Regular file record as produced by the archive reader."""
    return ArchiveRecord(path=path, type=tarfile.REGTYPE, size=size)


def directory(path: str) -> ArchiveRecord:
    return ArchiveRecord(path=path, type=tarfile.DIRTYPE)


def whiteout(path: str) -> ArchiveRecord:
    parent, name = posixpath.split(path)
    return ArchiveRecord(path=posixpath.join(parent, f".wh.{name}"), type=tarfile.REGTYPE)
