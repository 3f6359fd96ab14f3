"""Tests for binding build history to layer trees."""

from dataclasses import replace

import pytest

from image_efficiency.exceptions import (
    LayerConsistencyError,
    ManifestMismatchError,
    MissingLayerTreeError,
)
from image_efficiency.filetree.builder import build_layer_tree
from image_efficiency.image.assembler import (
    assemble_layers,
    check_layer_consistency,
    layer_positions,
)
from image_efficiency.image.layer import Layer
from image_efficiency.image.manifest import (
    HistoryEntry,
    ImageConfig,
    ManifestModel,
    assign_layer_ids,
)
from tests.helpers import reg

TAR_PATHS = ("base/layer.tar", "deps/layer.tar", "app/layer.tar", "cfg/layer.tar")


def _config(history):
    diff_ids = [f"sha256:{i:064x}" for i in range(1, len(history) + 1)]
    return ImageConfig(
        history=assign_layer_ids(list(history), diff_ids), diff_ids=tuple(diff_ids)
    )


@pytest.fixture
def tree_map():
    """Four layers with distinct sizes so a mis-paired tree is detectable."""
    return {
        "base/layer.tar": build_layer_tree("base/layer.tar", [reg("bin/sh", 1000)]),
        "deps/layer.tar": build_layer_tree("deps/layer.tar", [reg("usr/lib/libx.so", 300)]),
        "app/layer.tar": build_layer_tree("app/layer.tar", [reg("app/main", 20), reg("app/cfg", 2)]),
        "cfg/layer.tar": build_layer_tree("cfg/layer.tar", [reg("etc/app.conf", 5)]),
    }


@pytest.fixture
def interleaved_history():
    """Content layers separated by metadata-only entries."""
    return [
        HistoryEntry(created_by="/bin/sh -c #(nop) ADD file:abc in / "),
        HistoryEntry(created_by='/bin/sh -c #(nop)  CMD ["sh"]', empty_layer=True),
        HistoryEntry(created_by="/bin/sh -c apk add libx"),
        HistoryEntry(created_by="/bin/sh -c #(nop)  ENV A=1", empty_layer=True),
        HistoryEntry(created_by="/bin/sh -c #(nop)  LABEL x=y", empty_layer=True),
        HistoryEntry(created_by="/bin/sh -c #(nop) COPY dir:app in /app "),
        HistoryEntry(created_by="/bin/sh -c #(nop) COPY file:conf in /etc "),
        HistoryEntry(created_by='/bin/sh -c #(nop)  ENTRYPOINT ["/app/main"]', empty_layer=True),
    ]


def test_layer_positions():
    assert layer_positions(3) == [(0, 2), (1, 1), (2, 0)]
    assert layer_positions(0) == []


def test_each_layer_gets_its_own_tree(tree_map, interleaved_history):
    """Test chronological tree content lands in the reverse-ordered slot."""
    manifest = ManifestModel(config_path="c.json", layer_tar_paths=TAR_PATHS)

    layers, trees = assemble_layers(manifest, _config(interleaved_history), tree_map)

    assert [tree.name for tree in trees] == list(TAR_PATHS)
    assert [layer.index for layer in layers] == [0, 1, 2, 3]
    assert [layer.tar_path for layer in layers] == list(reversed(TAR_PATHS))
    assert [layer.tree.name for layer in layers] == list(reversed(TAR_PATHS))
    assert [layer.size for layer in layers] == [5, 22, 300, 1000]
    assert [layer.command for layer in layers] == [
        "#(nop) COPY file:conf in /etc ",
        "#(nop) COPY dir:app in /app ",
        "apk add libx",
        "#(nop) ADD file:abc in / ",
    ]
    for layer in layers:
        assert layer.tree is tree_map[layer.tar_path]
        assert layer.tree.total_size() == layer.size


def test_layers_share_trees_by_reference(tree_map, interleaved_history):
    manifest = ManifestModel(config_path="c.json", layer_tar_paths=TAR_PATHS)

    layers, trees = assemble_layers(manifest, _config(interleaved_history), tree_map)

    count = len(trees)
    for layer in layers:
        assert layer.tree is trees[count - 1 - layer.index]


def test_layer_ids_follow_content_history(tree_map, interleaved_history):
    manifest = ManifestModel(config_path="c.json", layer_tar_paths=TAR_PATHS)
    config = _config(interleaved_history)

    layers, _ = assemble_layers(manifest, config, tree_map)

    content_ids = [entry.id for entry in config.content_history]
    assert [layer.id for layer in layers] == list(reversed(content_ids))
    assert all(layer.id != "<missing>" for layer in layers)


def test_base_layer_is_last(tree_map, interleaved_history):
    manifest = ManifestModel(config_path="c.json", layer_tar_paths=TAR_PATHS)

    layers, _ = assemble_layers(manifest, _config(interleaved_history), tree_map)

    assert layers[-1].is_base
    assert not any(layer.is_base for layer in layers[:-1])
    assert str(layers[-1]).endswith(f"FROM {layers[-1].short_id}")


def test_manifest_has_more_layers_than_history(tree_map):
    """Test three manifest layers against two content history entries."""
    manifest = ManifestModel(config_path="c.json", layer_tar_paths=TAR_PATHS[:3])
    history = [
        HistoryEntry(created_by="a"),
        HistoryEntry(created_by="b", empty_layer=True),
        HistoryEntry(created_by="c"),
    ]

    with pytest.raises(ManifestMismatchError):
        assemble_layers(manifest, _config(history), tree_map)


def test_history_has_more_layers_than_manifest(tree_map):
    manifest = ManifestModel(config_path="c.json", layer_tar_paths=TAR_PATHS[:1])
    history = [HistoryEntry(created_by="a"), HistoryEntry(created_by="b")]

    with pytest.raises(ManifestMismatchError):
        assemble_layers(manifest, _config(history), tree_map)


def test_missing_tree(tree_map):
    manifest = ManifestModel(
        config_path="c.json", layer_tar_paths=("base/layer.tar", "gone/layer.tar")
    )
    history = [HistoryEntry(created_by="a"), HistoryEntry(created_by="b")]

    with pytest.raises(MissingLayerTreeError, match="gone/layer.tar"):
        assemble_layers(manifest, _config(history), tree_map)


def test_no_layers():
    manifest = ManifestModel(config_path="c.json", layer_tar_paths=())
    config = _config([HistoryEntry(created_by="CMD", empty_layer=True)])

    layers, trees = assemble_layers(manifest, config, {})

    assert layers == []
    assert trees == []


def test_consistency_check_detects_swapped_trees(tree_map, interleaved_history):
    manifest = ManifestModel(config_path="c.json", layer_tar_paths=TAR_PATHS)
    layers, trees = assemble_layers(manifest, _config(interleaved_history), tree_map)

    swapped = list(layers)
    swapped[0] = replace(layers[0], tree=layers[1].tree)

    with pytest.raises(LayerConsistencyError):
        check_layer_consistency(swapped, trees)


def test_consistency_check_detects_wrong_slot(tree_map, interleaved_history):
    manifest = ManifestModel(config_path="c.json", layer_tar_paths=TAR_PATHS)
    layers, trees = assemble_layers(manifest, _config(interleaved_history), tree_map)

    with pytest.raises(LayerConsistencyError):
        check_layer_consistency(list(reversed(layers)), trees)


def test_consistency_check_detects_size_mismatch(tree_map, interleaved_history):
    manifest = ManifestModel(config_path="c.json", layer_tar_paths=TAR_PATHS)
    layers, trees = assemble_layers(manifest, _config(interleaved_history), tree_map)

    tampered = list(layers)
    tampered[2] = replace(layers[2], history=replace(layers[2].history, size=1))

    with pytest.raises(LayerConsistencyError, match="size"):
        check_layer_consistency(tampered, trees)


def test_layer_properties():
    tree = build_layer_tree("0123456789abcdef0123456789abcdef/layer.tar", [reg("a", 2048)])
    layer = Layer(
        index=1,
        tar_path="0123456789abcdef0123456789abcdef/layer.tar",
        history=HistoryEntry(
            created_by="/bin/sh -c apt-get update", id="sha256:" + "f" * 64, size=2048
        ),
        tree=tree,
    )

    assert layer.short_id == ("sha256:" + "f" * 64)[:25]
    assert layer.command == "apt-get update"
    assert layer.tar_id == "0123456789abcdef0123456789abcdef"
    assert str(layer) == "%-25s %7s  %s" % (layer.short_id, "2.0 kB", "apt-get update")
    assert layer.to_dict()["tree"] == layer.tar_path


def test_layer_command_without_shell_prefix():
    layer = Layer(
        index=0,
        tar_path="x/layer.tar",
        history=HistoryEntry(created_by="COPY . /app # buildkit"),
        tree=build_layer_tree("x/layer.tar", []),
    )

    assert layer.command == "COPY . /app # buildkit"
