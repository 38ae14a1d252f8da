"""Lifecycle management for intermediate output files."""

import threading
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Set, Tuple

from .logging_config import get_logger


class TempFileManager:
    """
    Owns every scratch file produced during a session.

    Paths handed out by :meth:`allocate` stay registered until released.
    :meth:`cleanup_all` also removes unregistered files found in the scratch
    directory, so orphans left by an abrupt exit disappear at the next
    session start.
    """

    def __init__(self, scratch_dir: Path):
        self._scratch_dir = Path(scratch_dir)
        self._registered: Set[Path] = set()
        self._lock = threading.Lock()
        self._logger = get_logger("watermark-pipeline.temp-files")

    @property
    def scratch_dir(self) -> Path:
        return self._scratch_dir

    @property
    def registered(self) -> Tuple[Path, ...]:
        with self._lock:
            return tuple(sorted(self._registered))

    def is_registered(self, path: Path) -> bool:
        with self._lock:
            return Path(path) in self._registered

    def allocate(self, suffix: str = "", prefix: str = "processed") -> Path:
        """Reserve a unique path in the scratch directory."""
        self._scratch_dir.mkdir(parents=True, exist_ok=True)
        if suffix and not suffix.startswith("."):
            suffix = f".{suffix}"
        name = f"{prefix}_{uuid.uuid4().hex[:8]}_{int(time.time())}{suffix}"
        path = self._scratch_dir / name
        with self._lock:
            self._registered.add(path)
        self._logger.debug(f"Allocated scratch file {path}")
        return path

    def release(self, path: Path) -> None:
        """Unregister ``path`` and delete it if it still exists."""
        path = Path(path)
        with self._lock:
            self._registered.discard(path)
        try:
            path.unlink()
            self._logger.debug(f"Released scratch file {path}")
        except FileNotFoundError:
            pass
        except OSError as exc:
            self._logger.warning(f"Could not remove scratch file {path}: {exc}")

    @contextmanager
    def scoped(self, suffix: str = "", prefix: str = "processed") -> Iterator[Path]:
        """
        Allocate a path that is released if the body raises.

        On normal exit the path stays registered: it is the caller's output.
        """
        path = self.allocate(suffix, prefix)
        try:
            yield path
        except BaseException:
            self.release(path)
            raise

    @contextmanager
    def transient(self, suffix: str = "", prefix: str = "intermediate") -> Iterator[Path]:
        """Allocate a path that is released on every exit."""
        path = self.allocate(suffix, prefix)
        try:
            yield path
        finally:
            self.release(path)

    def cleanup_all(self) -> int:
        """
        Remove every registered path and every file left in the scratch directory.

        Returns:
            Number of files removed
        """
        with self._lock:
            paths = set(self._registered)
            self._registered.clear()

        if self._scratch_dir.is_dir():
            paths.update(p for p in self._scratch_dir.iterdir() if p.is_file())

        removed = 0
        for path in paths:
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as exc:
                self._logger.warning(f"Could not remove scratch file {path}: {exc}")

        if removed:
            self._logger.info(f"Removed {removed} scratch file(s) from {self._scratch_dir}")
        return removed
