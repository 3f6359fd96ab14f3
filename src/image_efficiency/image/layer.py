"""Assembled image layer."""

from dataclasses import dataclass, field

from ..core.types import DEFAULT_SHORT_ID_LENGTH
from ..filetree.tree import LayerTree
from ..utils.format import format_bytes
from .manifest import HistoryEntry

LAYER_FORMAT = "%-25s %7s  %s"
SHELL_PREFIX = "/bin/sh -c "
LAYER_TAR_SUFFIX = "/layer.tar"


@dataclass(frozen=True)
class Layer:
    """A content-bearing layer bound to its history entry and file tree.

    ``index`` is reverse chronological: 0 is the most recently applied layer
    and the base (FROM) layer has the highest index.
    """

    index: int
    tar_path: str
    history: HistoryEntry
    tree: LayerTree = field(compare=False, repr=False)
    is_base: bool = False
    short_id_length: int = field(default=DEFAULT_SHORT_ID_LENGTH, repr=False)

    @property
    def id(self) -> str:
        return self.history.id

    @property
    def size(self) -> int:
        return self.history.size

    @property
    def created_by(self) -> str:
        return self.history.created_by

    @property
    def short_id(self) -> str:
        return self.id[: self.short_id_length]

    @property
    def command(self) -> str:
        """Build command with the shell wrapper removed."""
        if self.created_by.startswith(SHELL_PREFIX):
            return self.created_by[len(SHELL_PREFIX) :]
        return self.created_by

    @property
    def tar_id(self) -> str:
        if self.tar_path.endswith(LAYER_TAR_SUFFIX):
            return self.tar_path[: -len(LAYER_TAR_SUFFIX)]
        return self.tar_path

    def __str__(self) -> str:
        source = f"FROM {self.short_id}" if self.is_base else self.command
        return LAYER_FORMAT % (self.short_id, format_bytes(self.size), source)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "short_id": self.short_id,
            "index": self.index,
            "size": self.size,
            "command": self.command,
            "created_by": self.created_by,
            "tar_id": self.tar_id,
            "tar_path": self.tar_path,
            "tree": self.tree.name,
        }
