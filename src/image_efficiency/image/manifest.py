"""Parsing of manifest.json and the image config document."""

import json
from dataclasses import dataclass, replace
from typing import Any, List, Mapping, Optional, Tuple

from ..exceptions import ManifestError, ManifestMismatchError

MANIFEST_PATH = "manifest.json"
MISSING_ID = "<missing>"


@dataclass(frozen=True)
class ManifestModel:
    """First entry of a saved image's manifest.json."""

    config_path: str
    layer_tar_paths: Tuple[str, ...]  # chronological, oldest first
    repo_tags: Tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "config_path": self.config_path,
            "layer_tar_paths": list(self.layer_tar_paths),
            "repo_tags": list(self.repo_tags),
        }


@dataclass(frozen=True)
class HistoryEntry:
    """One build step from the image config history."""

    created_by: str = ""
    empty_layer: bool = False
    id: str = ""
    size: int = 0
    created: str = ""
    comment: str = ""


@dataclass(frozen=True)
class ImageConfig:
    """Image config with history ids resolved against rootfs diff ids."""

    history: Tuple[HistoryEntry, ...]  # chronological, oldest first
    diff_ids: Tuple[str, ...]
    architecture: str = ""
    os: str = ""
    created: str = ""

    @property
    def content_history(self) -> List[HistoryEntry]:
        """History entries that produced filesystem content."""
        return [entry for entry in self.history if not entry.empty_layer]

    def to_dict(self) -> dict:
        return {
            "architecture": self.architecture,
            "os": self.os,
            "created": self.created,
            "diff_ids": list(self.diff_ids),
            "history": [
                {
                    "id": entry.id,
                    "created_by": entry.created_by,
                    "empty_layer": entry.empty_layer,
                    "created": entry.created,
                    "comment": entry.comment,
                }
                for entry in self.history
            ],
        }


def _load_json(data: bytes, name: str) -> Any:
    try:
        return json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ManifestError(f"Invalid JSON in {name}: {e}") from e


def parse_manifest(data: bytes) -> ManifestModel:
    """Parse manifest.json content.

    Args:
        data: Raw manifest.json bytes

    Returns:
        ManifestModel for the first image in the manifest

    Raises:
        ManifestError: If the manifest is not a non-empty array of image entries
    """
    manifest_data = _load_json(data, MANIFEST_PATH)
    if not isinstance(manifest_data, list) or not manifest_data:
        raise ManifestError("manifest.json must be a non-empty array")

    entry = manifest_data[0]
    if not isinstance(entry, dict):
        raise ManifestError("Invalid manifest entry structure")

    config_path = entry.get("Config")
    if not isinstance(config_path, str) or not config_path:
        raise ManifestError("Manifest entry has no Config path")

    layers = entry.get("Layers", [])
    if not isinstance(layers, list) or not all(isinstance(p, str) for p in layers):
        raise ManifestError("Manifest Layers must be a list of paths")

    repo_tags = entry.get("RepoTags") or []
    if not isinstance(repo_tags, list) or not all(isinstance(t, str) for t in repo_tags):
        raise ManifestError("RepoTags must be a list of strings")

    return ManifestModel(
        config_path=config_path,
        layer_tar_paths=tuple(layers),
        repo_tags=tuple(repo_tags),
    )


def _optional_str(raw: Mapping[str, Any], key: str) -> str:
    value = raw.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ManifestError(f"History field {key} must be a string, got {value!r}")
    return value


def _parse_history_entry(raw: Any) -> HistoryEntry:
    if not isinstance(raw, dict):
        raise ManifestError("History entries must be objects")

    empty_layer = raw.get("empty_layer", False)
    if not isinstance(empty_layer, bool):
        raise ManifestError(
            f"History field empty_layer must be a boolean, got {empty_layer!r}"
        )

    return HistoryEntry(
        created_by=_optional_str(raw, "created_by"),
        empty_layer=empty_layer,
        created=_optional_str(raw, "created"),
        comment=_optional_str(raw, "comment"),
    )


def assign_layer_ids(
    history: List[HistoryEntry], diff_ids: List[str]
) -> Tuple[HistoryEntry, ...]:
    """Give each content-bearing history entry the next unused diff id.

    Empty layers get the ``<missing>`` sentinel id.

    Raises:
        ManifestMismatchError: If there are fewer diff ids than content entries
    """
    resolved = []
    remaining = iter(diff_ids)
    for entry in history:
        if entry.empty_layer:
            resolved.append(replace(entry, id=MISSING_ID))
            continue
        diff_id = next(remaining, None)
        if diff_id is None:
            raise ManifestMismatchError(
                f"Config history has more content layers than rootfs diff_ids "
                f"({len(diff_ids)})"
            )
        resolved.append(replace(entry, id=diff_id))
    return tuple(resolved)


def parse_image_config(data: bytes, name: str = "config") -> ImageConfig:
    """Parse the image config document and resolve history ids.

    Args:
        data: Raw config JSON bytes
        name: Archive path of the config, used in error messages

    Raises:
        ManifestError: If the config is not a JSON object or a field has the wrong type
        ManifestMismatchError: If history and diff ids cannot be paired
    """
    config_data = _load_json(data, name)
    if not isinstance(config_data, dict):
        raise ManifestError(f"Image config {name} must be a JSON object")

    raw_history = config_data.get("history") or []
    if not isinstance(raw_history, list):
        raise ManifestError(f"Image config {name} history must be a list")

    rootfs = config_data.get("rootfs") or {}
    if not isinstance(rootfs, dict):
        raise ManifestError(f"Image config {name} rootfs must be an object")
    diff_ids = rootfs.get("diff_ids") or []
    if not isinstance(diff_ids, list) or not all(isinstance(d, str) for d in diff_ids):
        raise ManifestError(
            f"Image config {name} rootfs.diff_ids must be a list of digests"
        )

    history = [_parse_history_entry(raw) for raw in raw_history]

    return ImageConfig(
        history=assign_layer_ids(history, diff_ids),
        diff_ids=tuple(diff_ids),
        architecture=config_data.get("architecture", ""),
        os=config_data.get("os", ""),
        created=config_data.get("created", ""),
    )


def load_image_metadata(
    json_files: Mapping[str, bytes],
) -> Tuple[ManifestModel, ImageConfig]:
    """Parse the manifest and the config it references from collected JSON files.

    Raises:
        ManifestMismatchError: If manifest.json or the referenced config is absent
        ManifestError: If either document is malformed
    """
    manifest_data = json_files.get(MANIFEST_PATH)
    if manifest_data is None:
        raise ManifestMismatchError("Image archive has no manifest.json")
    manifest = parse_manifest(manifest_data)

    config_data: Optional[bytes] = json_files.get(manifest.config_path)
    if config_data is None:
        raise ManifestMismatchError(
            f"Config {manifest.config_path} referenced by manifest.json not found"
        )
    return manifest, parse_image_config(config_data, manifest.config_path)
