"""Test configuration and fixtures."""

import pytest

from image_efficiency.filetree.builder import build_layer_tree
from tests.helpers import (
    build_image_archive,
    dir_entry,
    directory,
    file_entry,
    history_entry,
    reg,
    whiteout,
    whiteout_entry,
)


@pytest.fixture
def scenario_a_trees():
    """Layer 0 writes /a (100); layer 1 rewrites /a (40) and adds /b (10)."""
    return [
        build_layer_tree("l0/layer.tar", [reg("a", 100)]),
        build_layer_tree("l1/layer.tar", [reg("a", 40), reg("b", 10)]),
    ]


@pytest.fixture
def scenario_b_trees():
    """Base writes /bin/sh (500); layer 1 is unrelated; layer 2 deletes /bin/sh."""
    return [
        build_layer_tree("l0/layer.tar", [directory("bin/"), reg("bin/sh", 500)]),
        build_layer_tree("l1/layer.tar", [reg("etc/motd", 20)]),
        build_layer_tree("l2/layer.tar", [directory("bin/"), whiteout("bin/sh")]),
    ]


@pytest.fixture
def multi_layer_archive():
    """Three content layers interleaved with empty history entries."""
    layers = [
        (
            "base/layer.tar",
            [dir_entry("bin"), file_entry("bin/sh", 500), file_entry("etc/os-release", 30)],
        ),
        ("app/layer.tar", [dir_entry("app"), file_entry("app/main.py", 200)]),
        ("cfg/layer.tar", [file_entry("app/main.py", 210), whiteout_entry("bin/sh")]),
    ]
    history = [
        history_entry("/bin/sh -c #(nop) ADD file:abc in / "),
        history_entry('/bin/sh -c #(nop)  CMD ["sh"]', empty_layer=True),
        history_entry("/bin/sh -c #(nop) COPY dir:app in /app "),
        history_entry("/bin/sh -c #(nop) WORKDIR /app", empty_layer=True),
        history_entry("/bin/sh -c sed -i s/x/y/ /app/main.py && rm /bin/sh"),
        history_entry('/bin/sh -c #(nop)  ENTRYPOINT ["python"]', empty_layer=True),
    ]
    diff_ids = ["sha256:" + "a" * 64, "sha256:" + "b" * 64, "sha256:" + "c" * 64]
    return build_image_archive(layers, history=history, diff_ids=diff_ids)


# Pytest configuration
def pytest_configure(config):
    """Configure pytest markers and settings."""
    config.addinivalue_line("markers", "unit: mark test as unit test (default)")
