"""Bind build history to layer trees."""

import logging
from dataclasses import replace
from typing import List, Mapping, Sequence, Tuple

from ..core.types import DEFAULT_SHORT_ID_LENGTH
from ..exceptions import (
    LayerConsistencyError,
    ManifestMismatchError,
    MissingLayerTreeError,
)
from ..filetree.tree import LayerTree
from .layer import Layer
from .manifest import ImageConfig, ManifestModel

logger = logging.getLogger(__name__)


def layer_positions(count: int) -> List[Tuple[int, int]]:
    """Pair each chronological position with its reverse (caller-facing) index.

    Examples:
        layer_positions(3) -> [(0, 2), (1, 1), (2, 0)]
    """
    return list(zip(range(count), reversed(range(count))))


def select_trees(
    manifest: ManifestModel, tree_map: Mapping[str, LayerTree]
) -> List[LayerTree]:
    """Order built trees by the manifest's chronological layer paths.

    Raises:
        MissingLayerTreeError: If a manifest layer path has no tree
    """
    trees = []
    for tar_path in manifest.layer_tar_paths:
        tree = tree_map.get(tar_path)
        if tree is None:
            raise MissingLayerTreeError(
                f"No layer tree was built for manifest layer {tar_path}"
            )
        trees.append(tree)
    return trees


def check_layer_consistency(
    layers: Sequence[Layer], trees: Sequence[LayerTree]
) -> None:
    """Verify every layer sits in its own slot and carries its own tree.

    Raises:
        LayerConsistencyError: If a layer's slot, tree or size disagree
    """
    count = len(trees)
    if len(layers) != count:
        raise LayerConsistencyError(
            f"Assembled {len(layers)} layers for {count} layer trees"
        )
    for slot, layer in enumerate(layers):
        expected = trees[count - 1 - slot]
        if layer.index != slot:
            raise LayerConsistencyError(
                f"Layer {layer.tar_path} has index {layer.index} but sits in slot {slot}"
            )
        if layer.tree is not expected:
            raise LayerConsistencyError(
                f"Layer {layer.index} ({layer.tar_path}) is bound to tree "
                f"{layer.tree.name!r}, expected {expected.name!r}"
            )
        if layer.size != layer.tree.total_size():
            raise LayerConsistencyError(
                f"Layer {layer.index} size {layer.size} does not match its tree "
                f"size {layer.tree.total_size()}"
            )


def assemble_layers(
    manifest: ManifestModel,
    config: ImageConfig,
    tree_map: Mapping[str, LayerTree],
    short_id_length: int = DEFAULT_SHORT_ID_LENGTH,
) -> Tuple[List[Layer], List[LayerTree]]:
    """Produce the caller-facing layers and the chronological tree list.

    Each content-bearing history entry, taken oldest first, is paired with the
    tree and tar path at the same chronological position. Its layer lands at
    the reverse index, so ``layers[0]`` is the newest layer and the base
    layer is last. Empty history entries produce no layer.

    Args:
        manifest: Parsed manifest.json
        config: Parsed image config with resolved history ids
        tree_map: Built trees keyed by their archive entry name
        short_id_length: Characters kept by ``Layer.short_id``

    Returns:
        Tuple of (layers ordered by index, trees oldest first)

    Raises:
        ManifestMismatchError: If manifest layers and content history differ in count
        MissingLayerTreeError: If a manifest layer has no tree
        LayerConsistencyError: If the assembled pairing is inconsistent
    """
    history = config.content_history
    count = len(manifest.layer_tar_paths)
    if len(history) != count:
        raise ManifestMismatchError(
            f"Manifest declares {count} layers but config history has "
            f"{len(history)} content-bearing entries"
        )

    trees = select_trees(manifest, tree_map)

    slots: List[Layer] = [None] * count  # type: ignore[list-item]
    for entry, (position, index) in zip(history, layer_positions(count)):
        tree = trees[position]
        slots[index] = Layer(
            index=index,
            tar_path=manifest.layer_tar_paths[position],
            history=replace(entry, size=tree.total_size()),
            tree=tree,
            is_base=position == 0,
            short_id_length=short_id_length,
        )

    check_layer_consistency(slots, trees)
    logger.debug("Assembled %d layers from %d history entries", count, len(config.history))
    return slots, trees
