"""Path-indexed file tree for a single image layer."""

from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from .models import FileKind, FileRecord, normalize_path, split_path


class _Node:
    """A path segment; carries a record only if the layer wrote this path."""

    __slots__ = ("children", "record", "opaque")

    def __init__(self) -> None:
        self.children: Dict[str, "_Node"] = {}
        self.record: Optional[FileRecord] = None
        self.opaque = False


class LayerTree:
    """Every path written by one layer, indexed by path segment.

    Ancestor directories exist as structural nodes whether or not the layer
    archive held an explicit entry for them. Whiteout records are stored at
    the path they delete, so ``lookup("/bin/sh")`` on a layer that removed
    ``/bin/sh`` returns the whiteout record.
    """

    def __init__(self, name: str = "") -> None:
        self.name = name
        self.file_size = 0
        self._root = _Node()
        self._count = 0
        self._frozen = False

    def __repr__(self) -> str:
        return f"LayerTree(name={self.name!r}, files={self._count}, size={self.file_size})"

    def __len__(self) -> int:
        return self._count

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and self.lookup(path) is not None

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> "LayerTree":
        """Make the tree read-only; returns the tree for chaining."""
        self._frozen = True
        return self

    def _check_mutable(self) -> None:
        if self._frozen:
            raise RuntimeError(f"Layer tree {self.name!r} is frozen")

    def _find(self, path: str) -> Optional[_Node]:
        node = self._root
        for segment in split_path(normalize_path(path)):
            node = node.children.get(segment)
            if node is None:
                return None
        return node

    def _ensure(self, path: str) -> _Node:
        node = self._root
        for segment in split_path(path):
            node = node.children.setdefault(segment, _Node())
        return node

    def add(self, record: FileRecord) -> None:
        """Insert a record, replacing any earlier record at the same path.

        Regular file sizes accumulate into ``file_size`` at insertion time;
        a replaced record's size is not subtracted.
        """
        self._check_mutable()
        node = self._ensure(record.target_path)

        if record.is_opaque:
            node.opaque = True
            return

        if node.record is None and node is not self._root:
            self._count += 1
        node.record = record

        if record.is_regular:
            self.file_size += record.size

    def lookup(self, path: str) -> Optional[FileRecord]:
        """Return the record stored at ``path``, or None if the layer did not write it."""
        node = self._find(path)
        if node is None:
            return None
        return node.record

    def is_opaque(self, path: str) -> bool:
        node = self._find(path)
        return node is not None and node.opaque

    def walk(self) -> Iterator[Tuple[str, FileRecord]]:
        """Yield ``(path, record)`` depth first with children in lexical order."""
        stack: List[Tuple[str, _Node]] = [
            ("/" + name, child)
            for name, child in sorted(self._root.children.items(), reverse=True)
        ]
        while stack:
            path, node = stack.pop()
            if node.record is not None:
                yield path, node.record
            for name, child in sorted(node.children.items(), reverse=True):
                stack.append((f"{path}/{name}", child))

    def opaque_paths(self) -> Iterator[str]:
        """Yield directories whose lower-layer contents this layer hides."""
        if self._root.opaque:
            yield "/"
        stack: List[Tuple[str, _Node]] = [
            ("/" + name, child) for name, child in self._root.children.items()
        ]
        while stack:
            path, node = stack.pop()
            if node.opaque:
                yield path
            stack.extend((f"{path}/{name}", c) for name, c in node.children.items())

    def paths(self) -> List[str]:
        return [path for path, _ in self.walk()]

    def total_size(self) -> int:
        return self.file_size

    def _remove(self, path: str) -> None:
        segments = split_path(normalize_path(path))
        if not segments:
            self._root.children.clear()
            return
        parent = self._find("/" + "/".join(segments[:-1]))
        if parent is not None:
            parent.children.pop(segments[-1], None)

    def _recount(self) -> None:
        self._count = 0
        self.file_size = 0
        for _, record in self.walk():
            self._count += 1
            if record.is_regular:
                self.file_size += record.size


def stack_trees(trees: Sequence[LayerTree], name: str = "squashed") -> LayerTree:
    """Build the merged view of chronologically ordered layer trees.

    Later layers replace earlier records at the same path, whiteouts remove
    their target together with everything beneath it, and opaque directories
    drop whatever lower layers placed inside them. Whiteout records never
    appear in the result, and ``file_size`` counts only surviving files.
    """
    merged = LayerTree(name)

    for tree in trees:
        for opaque in tree.opaque_paths():
            node = merged._find(opaque)
            if node is not None:
                node.children.clear()

        for path, record in tree.walk():
            if record.is_whiteout:
                merged._remove(path)
                continue
            node = merged._ensure(path)
            if record.kind != FileKind.DIRECTORY:
                # a non-directory replaces whatever subtree was there
                node.children.clear()
            node.record = record

    merged._recount()
    return merged.freeze()
