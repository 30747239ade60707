"""
Cross-process locking for target workspaces.

Two locks are provided:
- A workspace lock held for a whole pipeline run, so two runs never write
  into the same staging directory at once
- A per-component lock held around fingerprint check, reset, extract,
  build and marker write, which is the minimum serialization needed if
  independent components are ever built concurrently

Lock files live next to the markers and are released automatically if
the holding process dies.
"""

import logging
import re
from contextlib import contextmanager
from pathlib import Path

from filelock import FileLock, Timeout as LockTimeout

logger = logging.getLogger(__name__)


class LockManager:
    """
    Manages file locks for one target workspace.

    Attributes:
        lock_dir: Directory where lock files are stored
    """

    def __init__(self, lock_dir: Path):
        self.lock_dir = Path(lock_dir)

    def _acquire(self, lock_path: Path, what: str, timeout: float):
        self.lock_dir.mkdir(parents=True, exist_ok=True)
        lock = FileLock(lock_path, timeout=timeout)
        try:
            lock.acquire()
        except LockTimeout:
            logger.error(
                f"Could not acquire {what} lock after {timeout}s. "
                "Another ndkforge process may be using this workspace."
            )
            raise
        logger.debug(f"Acquired {what} lock: {lock_path}")
        return lock

    @contextmanager
    def workspace_lock(self, timeout: float = 10):
        """
        Hold the lock for a whole pipeline run.

        Raises:
            LockTimeout: If another run holds the workspace
        """
        lock = self._acquire(self.lock_dir / "workspace.lock", "workspace", timeout)
        try:
            yield
        finally:
            lock.release()
            logger.debug("Released workspace lock")

    @contextmanager
    def component_lock(self, component: str, timeout: float = -1):
        """
        Serialize work on a single component.

        Args:
            component: Component name (e.g. 'zlib')
            timeout: Maximum wait in seconds; negative waits forever
        """
        safe_name = re.sub(r"[^A-Za-z0-9._-]", "-", component)
        lock = self._acquire(
            self.lock_dir / f"{safe_name}.lock", f"component '{component}'", timeout
        )
        try:
            yield
        finally:
            lock.release()
