"""Data models for archive record handling."""

import tarfile
from dataclasses import dataclass, field
from typing import IO, Dict, List, Optional

LAYER_TAR_SUFFIX = "layer.tar"

# Header classes that tarfile normally consumes itself; seeing one as a
# record means the archive was demultiplexed by something that did not.
EXTENDED_HEADER_NAMES = {
    tarfile.XGLTYPE: "XGlobalHeader",
    tarfile.XHDTYPE: "XHeader",
}


@dataclass(frozen=True)
class ArchiveRecord:
    """One entry of a tar archive: header fields plus an optional content stream."""

    path: str
    type: bytes
    size: int = 0
    link_target: str = ""
    stream: Optional[IO[bytes]] = field(default=None, compare=False, repr=False)

    @classmethod
    def from_tarinfo(
        cls, member: tarfile.TarInfo, stream: Optional[IO[bytes]] = None
    ) -> "ArchiveRecord":
        """Build a record from a tarfile member header."""
        return cls(
            path=member.name,
            type=member.type,
            size=member.size,
            link_target=member.linkname,
            stream=stream,
        )

    @property
    def header_name(self) -> Optional[str]:
        """Name of the extended header class, or None for ordinary entries."""
        return EXTENDED_HEADER_NAMES.get(self.type)

    @property
    def is_layer_archive(self) -> bool:
        return self.path.endswith(LAYER_TAR_SUFFIX)

    @property
    def is_regular(self) -> bool:
        return self.type in tarfile.REGULAR_TYPES

    @property
    def is_symlink(self) -> bool:
        return self.type == tarfile.SYMTYPE


@dataclass
class ScannedImage:
    """Everything collected in one sequential pass over an image archive."""

    json_files: Dict[str, bytes] = field(default_factory=dict)
    layer_records: Dict[str, List[ArchiveRecord]] = field(default_factory=dict)
    layer_links: Dict[str, str] = field(default_factory=dict)  # symlink -> target

    def resolve_layer_name(self, name: str) -> str:
        """Follow layer symlinks to the archive entry holding the content."""
        seen = set()
        while name in self.layer_links and name not in seen:
            seen.add(name)
            name = self.layer_links[name]
        return name
