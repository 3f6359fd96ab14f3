"""Data models for per-layer file entries."""

import posixpath
import tarfile
from dataclasses import dataclass
from enum import Enum

WHITEOUT_PREFIX = ".wh."
OPAQUE_WHITEOUT = ".wh..wh..opq"


class FileKind(str, Enum):
    """Classification of a layer archive entry."""

    REGULAR = "regular"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    WHITEOUT = "whiteout"
    OTHER = "other"


def normalize_path(path: str) -> str:
    """Normalize an archive member name to an absolute POSIX path.

    Examples:
        "./usr/bin/" -> "/usr/bin"
        "etc//passwd" -> "/etc/passwd"
        "." -> "/"
    """
    segments = [s for s in path.split("/") if s and s != "."]
    return posixpath.normpath("/" + "/".join(segments))


def split_path(path: str) -> list[str]:
    """Split a normalized path into its segments (root is an empty list)."""
    return [s for s in path.split("/") if s]


@dataclass(frozen=True)
class FileRecord:
    """One filesystem entry observed inside a layer archive."""

    path: str
    size: int
    kind: FileKind
    link_target: str = ""

    @classmethod
    def from_header(
        cls, path: str, type_flag: bytes, size: int = 0, link_target: str = ""
    ) -> "FileRecord":
        """Classify a tar header into a record with a normalized path."""
        normalized = normalize_path(path)
        name = posixpath.basename(normalized)

        if name.startswith(WHITEOUT_PREFIX):
            kind = FileKind.WHITEOUT
        elif type_flag in tarfile.REGULAR_TYPES:
            kind = FileKind.REGULAR
        elif type_flag == tarfile.DIRTYPE:
            kind = FileKind.DIRECTORY
        elif type_flag == tarfile.SYMTYPE:
            kind = FileKind.SYMLINK
        else:
            kind = FileKind.OTHER

        # Sizes only count for content that occupies bytes in the layer
        if kind != FileKind.REGULAR:
            size = 0

        return cls(path=normalized, size=size, kind=kind, link_target=link_target)

    @property
    def is_regular(self) -> bool:
        return self.kind == FileKind.REGULAR

    @property
    def is_whiteout(self) -> bool:
        return self.kind == FileKind.WHITEOUT

    @property
    def is_opaque(self) -> bool:
        """True for the marker that hides a whole directory from lower layers."""
        return self.is_whiteout and posixpath.basename(self.path) == OPAQUE_WHITEOUT

    @property
    def target_path(self) -> str:
        """Path this record applies to.

        For a whiteout this is the deleted path (the opaque marker targets its
        parent directory); for every other kind it is the record's own path.
        """
        if not self.is_whiteout:
            return self.path
        parent, name = posixpath.split(self.path)
        if name == OPAQUE_WHITEOUT:
            return parent
        return posixpath.join(parent, name[len(WHITEOUT_PREFIX) :])
