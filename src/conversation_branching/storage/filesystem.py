"""Filesystem branch repository.

Persists each branch, together with its messages, as one JSON document,
and keeps one merge log per conversation.  Defaults to
``~/.conversation-branches/``::

    <storage_dir>/branches/<branch_id>.json
    <storage_dir>/merges/<conversation_id>.json

Every write takes a :class:`DocumentLock` on the document it rewrites.

Classes
-------
- FilesystemBranchRepository  — JSON-document-per-branch storage
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from conversation_branching.branching.records import Branch, BranchMessage
from conversation_branching.merge.engine import MergeRecord
from conversation_branching.storage.base import BranchRepository
from conversation_branching.storage.locking import DocumentLock

logger = logging.getLogger(__name__)

_DEFAULT_STORAGE_DIR: Path = Path.home() / ".conversation-branches"
_FILE_EXTENSION = ".json"


class FilesystemBranchRepository(BranchRepository):
    """Stores branches as JSON files.

    Parameters
    ----------
    storage_dir:
        Root directory.  Defaults to ``~/.conversation-branches/``.
        Sub-directories are created on first write.
    lock_timeout:
        Seconds to wait for a document lock.  Writes raise
        :class:`~conversation_branching.storage.locking.LockTimeoutError`
        when another writer keeps the document locked longer.
    """

    def __init__(
        self,
        storage_dir: str | Path | None = None,
        lock_timeout: float = 10.0,
    ) -> None:
        self._storage_dir: Path = (
            Path(storage_dir) if storage_dir is not None else _DEFAULT_STORAGE_DIR
        )
        self._lock_timeout = lock_timeout

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @property
    def _branch_dir(self) -> Path:
        return self._storage_dir / "branches"

    @property
    def _merge_dir(self) -> Path:
        return self._storage_dir / "merges"

    @staticmethod
    def _safe_name(identifier: str) -> str:
        # Guard against path traversal.
        return os.path.basename(identifier)

    def _branch_path(self, branch_id: str) -> Path:
        return self._branch_dir / f"{self._safe_name(branch_id)}{_FILE_EXTENSION}"

    def _merge_path(self, conversation_id: str) -> Path:
        return self._merge_dir / f"{self._safe_name(conversation_id)}{_FILE_EXTENSION}"

    def _lock_for(self, path: Path) -> DocumentLock:
        return DocumentLock(path, timeout=self._lock_timeout)

    def _read_document(self, branch_id: str) -> dict[str, object]:
        path = self._branch_path(branch_id)
        if not path.exists():
            raise KeyError(f"Branch {branch_id!r} not found at {path}")
        return json.loads(path.read_text(encoding="utf-8"))

    def _write_document(self, path: Path, document: object) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(path.name + ".tmp")
        tmp_path.write_text(json.dumps(document, indent=2, default=str), encoding="utf-8")
        tmp_path.replace(path)

    # ------------------------------------------------------------------
    # BranchRepository interface
    # ------------------------------------------------------------------

    def save_branch(self, branch: Branch) -> None:
        """Write *branch*, keeping any messages already stored with it."""
        path = self._branch_path(branch.branch_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock_for(path):
            messages: list[object] = []
            if path.exists():
                messages = json.loads(path.read_text(encoding="utf-8")).get("messages", [])
            self._write_document(
                path, {"branch": branch.model_dump(mode="json"), "messages": messages}
            )
        logger.debug("FilesystemBranchRepository: saved branch %r", branch.branch_id)

    def get_branch(self, branch_id: str) -> Branch:
        return Branch.model_validate(self._read_document(branch_id)["branch"])

    def list_branches(self, conversation_id: str) -> list[Branch]:
        """Scan every branch document; sorted by ``created_at``."""
        if not self._branch_dir.exists():
            return []
        branches: list[Branch] = []
        for path in self._branch_dir.glob(f"*{_FILE_EXTENSION}"):
            if not path.is_file():
                continue
            branch = Branch.model_validate(
                json.loads(path.read_text(encoding="utf-8"))["branch"]
            )
            if branch.conversation_id == conversation_id:
                branches.append(branch)
        branches.sort(key=lambda b: b.created_at)
        return branches

    def delete_branch(self, branch_id: str) -> None:
        path = self._branch_path(branch_id)
        if not path.exists():
            raise KeyError(f"Branch {branch_id!r} not found at {path}")
        with self._lock_for(path):
            path.unlink()
        logger.debug("FilesystemBranchRepository: deleted branch %r", branch_id)

    def branch_exists(self, branch_id: str) -> bool:
        return self._branch_path(branch_id).exists()

    def save_message(self, message: BranchMessage) -> None:
        path = self._branch_path(message.branch_id)
        if not path.exists():
            raise KeyError(f"Branch {message.branch_id!r} not found at {path}")
        with self._lock_for(path):
            document = json.loads(path.read_text(encoding="utf-8"))
            stored: list[dict[str, object]] = document.get("messages", [])
            if any(m.get("message_index") == message.message_index for m in stored):
                raise ValueError(
                    f"Branch {message.branch_id!r} already has a message at index "
                    f"{message.message_index}."
                )
            stored.append(message.model_dump(mode="json"))
            stored.sort(key=lambda m: int(m["message_index"]))  # type: ignore[arg-type]
            document["messages"] = stored
            self._write_document(path, document)

    def list_messages(self, branch_id: str) -> list[BranchMessage]:
        if not self.branch_exists(branch_id):
            return []
        document = self._read_document(branch_id)
        return [BranchMessage.model_validate(raw) for raw in document.get("messages", [])]

    def record_merge(self, record: MergeRecord) -> None:
        path = self._merge_path(record.conversation_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock_for(path):
            log: list[object] = []
            if path.exists():
                log = json.loads(path.read_text(encoding="utf-8"))
            log.append(record.model_dump(mode="json"))
            self._write_document(path, log)

    def list_merges(self, conversation_id: str) -> list[MergeRecord]:
        path = self._merge_path(conversation_id)
        if not path.exists():
            return []
        return [
            MergeRecord.model_validate(raw)
            for raw in json.loads(path.read_text(encoding="utf-8"))
        ]

    def __repr__(self) -> str:
        return f"FilesystemBranchRepository(storage_dir={str(self._storage_dir)!r})"
