"""Branch and branch-message domain models.

All types are Pydantic BaseModel subclasses to enable runtime validation
and field-for-field JSON serialisation.

Classes
-------
- MessageRole      — enum for the two conversational roles
- MessageMetadata  — informational model/usage annotations
- Branch           — an independently appendable fork of a conversation
- BranchMessage    — one immutable message inside a branch
- ValidationError  — raised for invalid names and empty identifiers

Functions
---------
- validate_branch_name  — enforce the branch naming rule
- new_branch            — factory for a fresh ``Branch``
- new_branch_message    — factory for a fresh ``BranchMessage``
"""
from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

BRANCH_NAME_MIN_LENGTH = 2
BRANCH_NAME_MAX_LENGTH = 100
_BRANCH_NAME_PATTERN = re.compile(r"^[A-Za-z0-9 \-_]+$")


class ValidationError(ValueError):
    """Raised when a branch name or a required identifier is invalid."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def require_id(value: str | None, field_name: str) -> str:
    """Return *value* unchanged, raising ``ValidationError`` when it is blank."""
    if value is None or not str(value).strip():
        raise ValidationError(f"{field_name} must not be empty.")
    return value


def validate_branch_name(name: str) -> str:
    """Check *name* against the branch naming rule.

    Names are 2 to 100 characters of letters, digits, spaces, hyphens
    and underscores.

    Parameters
    ----------
    name:
        Candidate branch name.

    Returns
    -------
    str
        The name, unchanged.

    Raises
    ------
    ValidationError
        If the name is empty, too short, too long, or contains an
        illegal character.
    """
    if not name or not name.strip():
        raise ValidationError("Branch name cannot be empty")
    if len(name) < BRANCH_NAME_MIN_LENGTH:
        raise ValidationError(
            f"Branch name must be at least {BRANCH_NAME_MIN_LENGTH} characters"
        )
    if len(name) > BRANCH_NAME_MAX_LENGTH:
        raise ValidationError(
            f"Branch name cannot exceed {BRANCH_NAME_MAX_LENGTH} characters"
        )
    if not _BRANCH_NAME_PATTERN.match(name):
        raise ValidationError(
            "Branch name can only contain alphanumeric characters, spaces, "
            "hyphens, and underscores"
        )
    return name


class MessageRole(str, Enum):
    """The speaker of a branch message."""

    USER = "user"
    ASSISTANT = "assistant"


class MessageMetadata(BaseModel):
    """Model and usage annotations attached to a message.

    Informational only; branching logic never reads these fields.
    """

    model: str | None = None
    temperature: float | None = None
    tokens_used: int | None = Field(default=None, ge=0)

    model_config = {"frozen": True, "protected_namespaces": ()}


class Branch(BaseModel):
    """An independently appendable fork of a conversation's history.

    Parameters
    ----------
    branch_id:
        Unique identifier for this branch.
    conversation_id:
        The conversation every branch in this forest belongs to.
    parent_branch_id:
        The branch this one was forked from.  ``None`` for a root branch.
    name:
        Human-readable name (see :func:`validate_branch_name`).
    description:
        Free text.
    created_from_message_index:
        Index into the parent's message sequence marking the fork point.
    created_from_message_id:
        Id of the last parent message inherited at the fork point, when
        known.
    message_count:
        Cached number of messages appended to this branch.
    is_active:
        False once the branch has been retired, e.g. after being merged.
    tags:
        Free-form labels; duplicates are allowed.
    created_at:
        Creation timestamp (UTC).
    updated_at:
        Refreshed on every append, rename, tag change or deactivation.
    """

    branch_id: str = Field(default_factory=lambda: str(uuid4()))
    conversation_id: str
    parent_branch_id: str | None = None
    name: str
    description: str = ""
    created_from_message_index: int | None = Field(default=None, ge=0)
    created_from_message_id: str | None = None
    message_count: int = Field(default=0, ge=0)
    is_active: bool = True
    tags: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    model_config = {"frozen": False}

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        return validate_branch_name(value)

    @property
    def is_root(self) -> bool:
        """True when the branch has no parent."""
        return self.parent_branch_id is None

    # ------------------------------------------------------------------
    # Mutation helpers
    # ------------------------------------------------------------------

    def touch(self) -> None:
        """Refresh ``updated_at``."""
        self.updated_at = _utcnow()

    def record_append(self) -> None:
        """Account for one appended message."""
        self.message_count += 1
        self.touch()

    def rename(self, name: str) -> None:
        """Validate and apply a new name."""
        self.name = validate_branch_name(name)
        self.touch()

    def add_tag(self, tag: str) -> None:
        self.tags.append(tag)
        self.touch()

    def remove_tag(self, tag: str) -> bool:
        """Remove the first occurrence of *tag*; return True if it was present."""
        if tag not in self.tags:
            return False
        self.tags.remove(tag)
        self.touch()
        return True

    def deactivate(self) -> None:
        self.is_active = False
        self.touch()

    def summary_line(self) -> str:
        """Return a one-line human-readable description."""
        parent = self.parent_branch_id[:8] if self.parent_branch_id else "-"
        return (
            f"Branch[{self.name}] id={self.branch_id[:8]} parent={parent} "
            f"messages={self.message_count} active={self.is_active}"
        )


class BranchMessage(BaseModel):
    """A single message inside a branch.

    Messages are immutable once created.  ``message_index`` is the
    zero-based position within the owning branch; the indices of one
    branch always form the contiguous run ``0..n-1``.
    """

    message_id: str = Field(default_factory=lambda: str(uuid4()))
    branch_id: str
    conversation_id: str
    role: MessageRole
    content: str
    message_index: int = Field(ge=0)
    timestamp: datetime = Field(default_factory=_utcnow)
    metadata: MessageMetadata = Field(default_factory=MessageMetadata)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def new_branch(
    conversation_id: str,
    name: str,
    description: str = "",
    fork_from_message_index: int | None = None,
    parent_branch_id: str | None = None,
    *,
    created_from_message_id: str | None = None,
    tags: list[str] | None = None,
) -> Branch:
    """Create a fresh, active, empty branch.

    Raises
    ------
    ValidationError
        If *name* breaks the naming rule, *conversation_id* is blank, or
        *fork_from_message_index* is negative.
    """
    require_id(conversation_id, "conversation_id")
    validate_branch_name(name)
    if fork_from_message_index is not None and fork_from_message_index < 0:
        raise ValidationError(
            f"fork_from_message_index must be non-negative, got {fork_from_message_index!r}."
        )
    now = _utcnow()
    return Branch(
        conversation_id=conversation_id,
        parent_branch_id=parent_branch_id or None,
        name=name,
        description=description,
        created_from_message_index=fork_from_message_index,
        created_from_message_id=created_from_message_id,
        tags=list(tags or []),
        created_at=now,
        updated_at=now,
    )


def new_branch_message(
    branch_id: str,
    conversation_id: str,
    role: MessageRole | str,
    content: str,
    message_index: int,
    metadata: MessageMetadata | dict[str, object] | None = None,
) -> BranchMessage:
    """Create a message for *branch_id* at *message_index*.

    The caller supplies the index (normally the branch's current
    ``message_count``); nothing is auto-incremented here.

    Raises
    ------
    ValidationError
        If an id is blank, the role is unknown, or the index is negative.
    """
    require_id(branch_id, "branch_id")
    require_id(conversation_id, "conversation_id")
    try:
        role = MessageRole(role)
    except ValueError:
        raise ValidationError(f"Unknown message role {role!r}.") from None
    if message_index < 0:
        raise ValidationError(f"message_index must be non-negative, got {message_index!r}.")
    if metadata is None:
        meta = MessageMetadata()
    elif isinstance(metadata, MessageMetadata):
        meta = metadata
    else:
        meta = MessageMetadata.model_validate(metadata)
    return BranchMessage(
        branch_id=branch_id,
        conversation_id=conversation_id,
        role=role,
        content=content,
        message_index=message_index,
        metadata=meta,
    )


def check_contiguous(messages: list[BranchMessage]) -> None:
    """Raise ``ValidationError`` unless indices run exactly ``0..n-1`` in order."""
    for position, message in enumerate(messages):
        if message.message_index != position:
            raise ValidationError(
                f"Message {message.message_id!r} has index {message.message_index}, "
                f"expected {position}."
            )
