"""Small persisted-state files (sync cursor, last retrieval result)."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional, Protocol

from secondbrain.errors import StateWriteError

LOGGER = logging.getLogger(__name__)

# One critical section per process; concurrent CLI processes are not coordinated.
_STATE_LOCK = threading.RLock()


class StateStore(Protocol):
    """Key-less text persistence port for a single piece of state."""

    @property
    def location(self) -> str: ...

    def exists(self) -> bool: ...

    def read(self) -> Optional[str]: ...

    def write(self, content: str) -> None: ...


class FileStateStore:
    """Stores state as a single UTF-8 text file."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    @property
    def location(self) -> str:
        return str(self.path)

    def exists(self) -> bool:
        return self.path.is_file()

    def read(self) -> Optional[str]:
        with _STATE_LOCK:
            if not self.path.exists():
                return None
            return self.path.read_text(encoding="utf-8")

    def write(self, content: str) -> None:
        with _STATE_LOCK:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_name(self.path.name + ".tmp")
            tmp_path.write_text(content, encoding="utf-8")
            tmp_path.replace(self.path)


def write_state(store: StateStore, content: str, *, what: str) -> bool:
    """Write `content`, applying the state write failure policy.

    Permission errors raise `StateWriteError`: state integrity can no longer be
    assumed. Other I/O errors are logged and reported by returning False so the
    next run retries from the previous state.
    """
    try:
        store.write(content)
    except PermissionError as exc:
        LOGGER.error("Access denied writing %s to %s: %s", what, store.location, exc)
        raise StateWriteError(
            f"Access denied writing {what} to {store.location}", path=Path(store.location)
        ) from exc
    except OSError as exc:
        LOGGER.error(
            "I/O error writing %s to %s: %s. State not updated, continuing",
            what,
            store.location,
            exc,
        )
        return False
    return True
