"""
Tests for the Watch Registry.

Requires Python 3.11+.
"""

import os
from pathlib import Path

import pytest

from watcher.registry import WatchRegistry


def _all_directories(root: Path) -> set[Path]:
    return {Path(dirpath) for dirpath, _, _ in os.walk(root)}


class TestWatchRegistry:
    """Test cases for WatchRegistry."""

    @pytest.fixture
    def registry(self, watch_service) -> WatchRegistry:
        """Create a registry over the stub-driven watch service."""
        return WatchRegistry(watch_service)

    def test_register_tree_covers_every_directory(self, registry: WatchRegistry, tree: Path):
        """Test that every directory present at startup gets a live key."""
        count = registry.register_tree(tree)

        expected = _all_directories(tree)
        assert count == len(expected) == 4
        assert set(registry.directories) == expected
        assert all(key.is_valid for key in registry.keys)

    def test_one_key_per_directory(self, registry: WatchRegistry, tree: Path):
        """Test that registering the tree twice does not duplicate keys."""
        registry.register_tree(tree)

        assert registry.register_tree(tree) == 0
        assert len(registry) == 4

    def test_resolve(self, registry: WatchRegistry, tree: Path):
        """Test resolving keys back to directories."""
        key = registry.register(tree / "src")

        assert registry.resolve(key) == tree / "src"
        assert registry.is_registered(tree / "src")
        assert not registry.is_registered(tree / "docs")

    def test_resolve_unknown_key(self, registry: WatchRegistry, watch_service, tree: Path):
        """Test that keys registered elsewhere do not resolve."""
        stray = watch_service.register(tree)

        assert registry.resolve(stray) is None

    def test_invalidate(self, registry: WatchRegistry, tree: Path):
        """Test that invalidation removes the mapping and cancels the key."""
        registry.register_tree(tree)
        key = next(k for k in registry.keys if registry.resolve(k) == tree / "src")

        assert registry.invalidate(key) == tree / "src"
        assert registry.resolve(key) is None
        assert not registry.is_registered(tree / "src")
        assert key.is_valid is False
        assert len(registry) == 3

    def test_empty_after_all_invalidated(self, registry: WatchRegistry, tree: Path):
        """Test that the registry reports empty once every key is gone."""
        registry.register_tree(tree)

        for key in registry.keys:
            registry.invalidate(key)

        assert registry.is_empty

    def test_missing_root_raises(self, registry: WatchRegistry, tmp_path: Path):
        """Test that a walk failure is propagated."""
        with pytest.raises(FileNotFoundError):
            registry.register_tree(tmp_path / "missing")

    def test_symlinked_directories_not_followed(self, registry: WatchRegistry, tree: Path, tmp_path: Path):
        """Test that the walk does not descend through directory symlinks."""
        outside = tmp_path / "outside"
        (outside / "deep").mkdir(parents=True)
        (tree / "link").symlink_to(outside, target_is_directory=True)

        registry.register_tree(tree)

        assert not any(str(d).startswith(str(tree / "link")) for d in registry.directories)
        assert not registry.is_registered(outside)

    def test_new_directories_not_covered(self, registry: WatchRegistry, tree: Path):
        """Test the documented gap: directories created after startup are not watched."""
        registry.register_tree(tree)

        (tree / "later").mkdir()

        assert not registry.is_registered(tree / "later")
        assert len(registry) == 4

    def test_relative_parts(self, registry: WatchRegistry, tree: Path, tmp_path: Path):
        """Test that paths are split below the tree root that contains them."""
        registry.register_tree(tree / "docs")
        registry.register_tree(tree)

        assert registry.roots == [tree]
        assert registry.relative_parts(tree / "docs" / "guide" / "a.md") == ("docs", "guide", "a.md")
        assert registry.relative_parts(tmp_path / "elsewhere") == (tmp_path / "elsewhere").parts
