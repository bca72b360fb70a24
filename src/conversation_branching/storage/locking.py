"""Per-document write locks for the filesystem branch repository.

Each repository document (a branch file or a conversation's merge log)
is guarded by a sibling sentinel ``<document>.lock``.  The sentinel is
created with exclusive-create mode and holds the owner's process id, so a
timeout can report who is blocking the write.

Classes
-------
DocumentLock
    Exclusive lock on one repository document.
LockTimeoutError
    Raised when a document stays locked past the timeout.
"""
from __future__ import annotations

import os
import time
from pathlib import Path

LOCK_SUFFIX = ".lock"
_POLL_INTERVAL_SECONDS: float = 0.05


class LockTimeoutError(TimeoutError):
    """Raised when a repository document cannot be locked in time."""

    def __init__(self, document_path: Path, timeout: float, holder: str | None) -> None:
        self.document_path = document_path
        self.timeout = timeout
        self.holder = holder
        owner = f" (held by pid {holder})" if holder else ""
        super().__init__(
            f"Document {document_path.name} is locked{owner}; gave up after {timeout}s"
        )


class DocumentLock:
    """Exclusive write lock on *document_path*.

    Parameters
    ----------
    document_path:
        The JSON document to protect.  The sentinel lives next to it at
        ``<document_path>.lock``.
    timeout:
        Seconds to wait before raising :class:`LockTimeoutError`.
    """

    def __init__(self, document_path: str | Path, timeout: float = 10.0) -> None:
        self.document_path = Path(document_path)
        self.lock_path = self.document_path.with_name(self.document_path.name + LOCK_SUFFIX)
        self._timeout = timeout
        self._held = False

    @property
    def is_held(self) -> bool:
        return self._held

    def holder(self) -> str | None:
        """Process id recorded in the sentinel, or None when unlocked."""
        try:
            return self.lock_path.read_text(encoding="utf-8").strip() or None
        except FileNotFoundError:
            return None

    def acquire(self) -> None:
        deadline = time.monotonic() + self._timeout
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        while True:
            try:
                with open(self.lock_path, "x", encoding="utf-8") as sentinel:
                    sentinel.write(str(os.getpid()))
            except FileExistsError:
                if time.monotonic() >= deadline:
                    raise LockTimeoutError(
                        self.document_path, self._timeout, self.holder()
                    ) from None
                time.sleep(_POLL_INTERVAL_SECONDS)
                continue
            self._held = True
            return

    def release(self) -> None:
        """Remove the sentinel.  A no-op when the lock is not held."""
        if not self._held:
            return
        self._held = False
        self.lock_path.unlink(missing_ok=True)

    def __enter__(self) -> DocumentLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"DocumentLock(document={self.document_path.name!r}, held={self._held})"
