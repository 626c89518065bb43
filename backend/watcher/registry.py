"""
GitWatch Watch Registry.

Tracks which directory each watch key belongs to.
Requires Python 3.11+.
"""

import os
from collections.abc import Iterable
from pathlib import Path

from watcher.watch_service import EventKind, WatchKey, WatchService
from utils.logger import LoggerMixin


def _raise_walk_error(error: OSError) -> None:
    raise error


class WatchRegistry(LoggerMixin):
    """
    Mapping from watch key to watched directory.

    Every directory has exactly one live key. Keys are removed when the
    watch service reports them invalid; an empty registry means there is
    nothing left to watch.
    """

    def __init__(
        self,
        watch_service: WatchService,
        kinds: Iterable[EventKind] = (EventKind.MODIFY,),
    ) -> None:
        """
        Initialize the registry.

        Args:
            watch_service: Service to register directories with
            kinds: Event kinds requested for every directory
        """
        self._service = watch_service
        self._kinds = tuple(kinds)
        self._directories: dict[WatchKey, Path] = {}
        self._watched: set[Path] = set()
        self._roots: list[Path] = []

    def register(self, directory: Path) -> WatchKey:
        """Register a single directory."""
        directory = Path(directory)
        key = self._service.register(directory, self._kinds)
        self._directories[key] = directory
        self._watched.add(directory)
        self.log.debug("directory_registered", directory=str(directory))
        return key

    def register_tree(self, root: Path) -> int:
        """
        Register root and every directory below it.

        Symbolic links to directories are not followed. Directories that
        are already registered are skipped.

        Args:
            root: Top of the tree to watch

        Returns:
            Number of directories registered

        Raises:
            OSError: If any directory in the tree cannot be read
        """
        root = Path(root).absolute()
        registered = 0
        if not any(root.is_relative_to(existing) for existing in self._roots):
            self._roots = [r for r in self._roots if not r.is_relative_to(root)]
            self._roots.append(root)

        for dirpath, _dirnames, _filenames in os.walk(root, onerror=_raise_walk_error):
            directory = Path(dirpath)
            if self.is_registered(directory):
                continue
            self.register(directory)
            registered += 1

        self.log.info("tree_registered", root=str(root), directories=registered)
        return registered

    def resolve(self, key: WatchKey) -> Path | None:
        """Get the directory for a key, or None if it is not registered."""
        return self._directories.get(key)

    def invalidate(self, key: WatchKey) -> Path | None:
        """
        Forget a key and cancel its watch.

        Returns:
            The directory the key watched, or None if it was unknown
        """
        directory = self._directories.pop(key, None)
        self._watched.discard(directory)
        key.cancel()
        if directory is not None:
            self.log.info(
                "directory_unwatched",
                directory=str(directory),
                remaining=len(self._directories),
            )
        return directory

    def relative_parts(self, path: Path) -> tuple[str, ...]:
        """
        Get the components of a path below the tree root that contains it.

        Paths outside every registered tree are returned whole.
        """
        path = Path(path)
        for root in self._roots:
            if path.is_relative_to(root):
                return path.relative_to(root).parts
        return path.parts

    @property
    def roots(self) -> list[Path]:
        """Get the top directories passed to register_tree."""
        return list(self._roots)

    def is_registered(self, directory: Path) -> bool:
        """Check if a directory already has a key."""
        return Path(directory) in self._watched

    @property
    def keys(self) -> list[WatchKey]:
        """Get all registered keys."""
        return list(self._directories.keys())

    @property
    def directories(self) -> list[Path]:
        """Get all watched directories."""
        return list(self._directories.values())

    @property
    def is_empty(self) -> bool:
        """Check if no directories are watched."""
        return not self._directories

    def __len__(self) -> int:
        return len(self._directories)
