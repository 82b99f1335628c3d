"""Core data models for kubelens.

Defines the schemas for:
- Registered clusters and partial updates to them
- Contexts discovered inside credential bundles (import candidates)
- Resource summaries and live watch events
- Command results returned to the presentation layer
"""

from __future__ import annotations

import enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# --- Enums ---


class ResourceEventType(enum.StrEnum):
    ADDED = "Added"
    MODIFIED = "Modified"
    DELETED = "Deleted"


# --- Cluster registry ---


class Cluster(BaseModel):
    """A registered connection profile.

    ``config_path`` points at an isolated, single-context kubeconfig owned by
    this cluster. Timestamps are whole seconds since the epoch.
    """

    id: str
    name: str
    context_name: str
    config_path: str
    icon: str | None = None
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    created_at: int
    last_accessed: int


class ClusterPatch(BaseModel):
    """Partial update for a cluster.

    Only fields that were explicitly set are applied (see
    ``model_fields_set``). Passing ``icon=None`` or ``description=None``
    clears the stored value; omitting them leaves it untouched.

    ``context_name`` is deliberately absent: renaming it would desynchronize
    the record from its extracted kubeconfig.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    icon: str | None = None
    description: str | None = None
    tags: list[str] | None = None


# --- Import ---


class DiscoveredContext(BaseModel):
    """A context found while scanning a kubeconfig. Never persisted."""

    context_name: str
    cluster_name: str
    user_name: str = ""
    namespace: str | None = None
    source_file: str


class ImportCandidate(BaseModel):
    """A discovered context plus suggested display metadata."""

    context: DiscoveredContext
    suggested_name: str
    icon: str | None = None
    description: str | None = None


# --- Live state ---


class ResourceSummary(BaseModel):
    """Generic metadata projection of a Kubernetes object."""

    id: str = ""
    name: str = ""
    namespace: str = ""
    age: str = "-"
    labels: dict[str, str] = Field(default_factory=dict)
    status: str = ""
    images: list[str] = Field(default_factory=list)
    created_at: int = 0


class ResourceEvent(BaseModel):
    """A typed change notification for one object in a watched collection."""

    type: ResourceEventType
    payload: ResourceSummary


# --- Command boundary ---


class CommandResult(BaseModel):
    """Outcome of a presentation-layer command.

    Exactly one of ``data`` (on success) or ``error`` (on failure) is
    meaningful. ``data`` may legitimately be ``None`` for commands with no
    return value or for a not-found lookup.
    """

    success: bool
    data: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, data: Any = None) -> CommandResult:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> CommandResult:
        return cls(success=False, error=error)
