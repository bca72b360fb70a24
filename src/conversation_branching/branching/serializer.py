"""Branch export and import with schema versioning.

A branch is exported together with its messages as one document::

    {"schema_version": "1.0", "exported_at": ..., "branch": {...}, "messages": [...]}

JSON and YAML round-trips are supported.  The schema version is checked
on load so that future readers can perform migrations.

Classes
-------
- BranchExport        — the in-memory form of an exported document
- BranchSerializer    — serialize/deserialize branches to JSON or YAML
- SchemaVersionError  — raised for unsupported documents
"""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Literal, Sequence

import yaml
from pydantic import BaseModel, Field, model_validator

from conversation_branching.branching.records import (
    Branch,
    BranchMessage,
    ValidationError,
    check_contiguous,
)

SCHEMA_VERSION = "1.0"
_SUPPORTED_SCHEMA_VERSIONS: frozenset[str] = frozenset({SCHEMA_VERSION})

ExportFormat = Literal["json", "yaml"]


class SchemaVersionError(ValueError):
    """Raised when a serialised document uses an unsupported schema version."""

    def __init__(self, version: str) -> None:
        self.version = version
        supported = ", ".join(sorted(_SUPPORTED_SCHEMA_VERSIONS))
        super().__init__(
            f"Unsupported schema version {version!r}. "
            f"Supported versions: {supported}"
        )


class BranchExport(BaseModel):
    """A branch and its ordered messages, as exported."""

    schema_version: str = SCHEMA_VERSION
    exported_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    branch: Branch
    messages: list[BranchMessage] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_messages(self) -> "BranchExport":
        for message in self.messages:
            if message.branch_id != self.branch.branch_id:
                raise ValueError(
                    f"Message {message.message_id!r} belongs to branch "
                    f"{message.branch_id!r}, not {self.branch.branch_id!r}."
                )
        return self


class BranchSerializer:
    """Serialize and deserialize branch exports.

    Parameters
    ----------
    validate_counts:
        When True (default), loading verifies that message indices run
        ``0..n-1`` and that ``message_count`` equals the number of
        messages, raising ``ValidationError`` otherwise.
    """

    def __init__(self, validate_counts: bool = True) -> None:
        self.validate_counts = validate_counts

    # ------------------------------------------------------------------
    # JSON
    # ------------------------------------------------------------------

    def to_json(
        self,
        branch: Branch,
        messages: Sequence[BranchMessage],
        *,
        indent: int = 2,
    ) -> str:
        """Serialise *branch* and *messages* to a JSON string."""
        data = self._export(branch, messages).model_dump(mode="json")
        return json.dumps(data, indent=indent, default=str)

    def from_json(self, raw: str) -> BranchExport:
        """Deserialize a document produced by :meth:`to_json`.

        Raises
        ------
        SchemaVersionError
            If the ``schema_version`` field is not supported.
        ValidationError
            If ``validate_counts`` is on and the messages break the
            contiguity invariant.
        json.JSONDecodeError
            If *raw* is not valid JSON.
        """
        data: dict[str, object] = json.loads(raw)
        return self._deserialize(data)

    # ------------------------------------------------------------------
    # YAML
    # ------------------------------------------------------------------

    def to_yaml(self, branch: Branch, messages: Sequence[BranchMessage]) -> str:
        """Serialise *branch* and *messages* to a YAML string."""
        data = self._export(branch, messages).model_dump(mode="json")
        return yaml.dump(data, default_flow_style=False, allow_unicode=True, sort_keys=True)

    def from_yaml(self, raw: str) -> BranchExport:
        """Deserialize a document produced by :meth:`to_yaml`."""
        data: dict[str, object] = yaml.safe_load(raw)
        return self._deserialize(data)

    # ------------------------------------------------------------------
    # Format dispatch
    # ------------------------------------------------------------------

    def serialize(
        self,
        branch: Branch,
        messages: Sequence[BranchMessage],
        format: ExportFormat = "json",
    ) -> str:
        if format == "yaml":
            return self.to_yaml(branch, messages)
        return self.to_json(branch, messages)

    def deserialize(self, raw: str, format: ExportFormat = "json") -> BranchExport:
        if format == "yaml":
            return self.from_yaml(raw)
        return self.from_json(raw)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _export(branch: Branch, messages: Sequence[BranchMessage]) -> BranchExport:
        ordered = sorted(messages, key=lambda m: m.message_index)
        return BranchExport(branch=branch, messages=ordered)

    def _deserialize(self, data: dict[str, object]) -> BranchExport:
        version = str(data.get("schema_version", ""))
        if version not in _SUPPORTED_SCHEMA_VERSIONS:
            raise SchemaVersionError(version)

        export = BranchExport.model_validate(data)

        if self.validate_counts:
            check_contiguous(export.messages)
            if export.branch.message_count != len(export.messages):
                raise ValidationError(
                    f"Branch {export.branch.branch_id!r} declares "
                    f"{export.branch.message_count} messages but "
                    f"{len(export.messages)} were exported."
                )
        return export
