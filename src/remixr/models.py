"""Core data models for the ReMixr composition engine."""

from __future__ import annotations

import json
import re
from enum import Enum
from typing import Any, Callable

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from .exceptions import CompositionError, ManifestParseError

MANIFEST_FILE = "manifest.json"


def _dedupe(values: tuple[str, ...]) -> tuple[str, ...]:
    """Drop repeated entries while keeping first-seen order."""
    return tuple(dict.fromkeys(values))


def _filled(value: str | None) -> bool:
    return bool(value and value.strip())


class ExtensionType(str, Enum):
    """Entry-point shape of the generated extension."""

    NONE = "none"
    CONTENT_SCRIPT = "content-script"
    POPUP = "popup"
    SIDE_PANEL = "side-panel"
    PAGE_ACTION = "page-action"


class HostAccess(str, Enum):
    """How broadly the extension may reach into web origins."""

    NONE = "none"
    ACTIVE_TAB = "active-tab"
    ALL_URLS = "all-urls"
    CUSTOM = "custom"


class Framework(str, Enum):
    """UI framework boilerplate used for the entry UI files."""

    NONE = "none"
    VANILLA = "vanilla"
    REACT = "react"
    VUE = "vue"
    PREACT = "preact"
    SVELTE = "svelte"


class Manifest(BaseModel):
    """Browser-extension manifest record.

    Unknown keys are preserved. Only keys present in the source document or
    explicitly set through one of the ``with_*`` helpers are serialized, so a
    manifest that passes through unchanged keeps its shape.

    Known keys are typed loosely: a value of the wrong type (``"version": 1``,
    ``"action": "popup.html"``) is kept exactly as it was and left for the
    validator to report. Composition only fails when it has to write into
    such a value.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    manifest_version: Any = None
    name: Any = None
    version: Any = None
    description: Any = None
    icons: Any = None
    permissions: Any = ()
    host_permissions: Any = ()
    background: Any = None
    action: Any = None
    side_panel: Any = None
    content_scripts: Any = None
    commands: Any = None

    @field_validator("permissions", "host_permissions", mode="before")
    @classmethod
    def dedupe_permissions(cls, v: Any) -> Any:
        """Lists of strings are sets; duplicates collapse. Other shapes are kept."""
        if isinstance(v, (list, tuple)) and all(isinstance(p, str) for p in v):
            return _dedupe(tuple(v))
        return v

    @classmethod
    def from_json(cls, text: str) -> Manifest:
        """Parse manifest JSON text.

        Raises:
            ManifestParseError: If the text is not a JSON object
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            msg = f"manifest.json is not valid JSON: {e}"
            raise ManifestParseError(msg, details={"line": e.lineno}) from e

        if not isinstance(data, dict):
            msg = "manifest.json must contain a JSON object"
            raise ManifestParseError(msg, details={"type": type(data).__name__})

        return cls.model_validate(data)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-ready mapping of all set keys."""
        return self.model_dump(mode="json", exclude_unset=True)

    def to_json(self) -> str:
        """Serialize deterministically for ``manifest.json``."""
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False) + "\n"

    def updated(self, **fields: Any) -> Manifest:
        """Return a new manifest with ``fields`` overwritten."""
        return Manifest.model_validate({**self.to_dict(), **fields})

    def entries(self, key: str) -> tuple[Any, ...] | None:
        """Current entries of a permission list, or None if it is not a list.

        A missing or null value counts as empty and a bare string as a
        single entry.
        """
        value = getattr(self, key)
        if value is None:
            return ()
        if isinstance(value, str):
            return (value,)
        if isinstance(value, (list, tuple)):
            return tuple(value)
        return None

    def section(self, key: str) -> dict[str, Any] | None:
        """Copy of an object-valued key; empty when absent, None when not an object."""
        value = getattr(self, key)
        if value is None:
            return {}
        if isinstance(value, dict):
            return dict(value)
        return None

    def with_permissions(self, *permissions: Any) -> Manifest:
        """Return a manifest whose ``permissions`` include ``permissions``.

        Raises:
            CompositionError: If entries must be added to a non-list value
        """
        return self._with_entries("permissions", permissions)

    def with_host_permissions(self, *patterns: Any) -> Manifest:
        """Return a manifest whose ``host_permissions`` include ``patterns``."""
        return self._with_entries("host_permissions", patterns)

    def _with_entries(self, key: str, values: tuple[Any, ...]) -> Manifest:
        current = self.entries(key)
        added: list[Any] = []
        for value in values:
            if value not in added and (current is None or value not in current):
                added.append(value)
        if not added:
            return self
        if current is None:
            msg = f"Cannot add {', '.join(map(str, added))} to '{key}': it is not a list"
            raise CompositionError(msg, details={"field": key}, step="mutate")
        return self.updated(**{key: [*current, *added]})


class Project(BaseModel):
    """An extension project: a name and a map of relative path to text."""

    model_config = ConfigDict(frozen=True)

    name: str
    files: dict[str, str] = Field(default_factory=dict)

    def manifest(self) -> Manifest:
        """Parse ``manifest.json``.

        Raises:
            ManifestParseError: If the file is missing or malformed
        """
        if MANIFEST_FILE not in self.files:
            msg = "Project has no manifest.json"
            raise ManifestParseError(msg, details={"project": self.name})
        return Manifest.from_json(self.files[MANIFEST_FILE])

    def with_files(self, files: dict[str, str], name: str | None = None) -> Project:
        """Return a copy holding ``files`` (and optionally a new name)."""
        return Project(name=self.name if name is None else name, files=dict(files))


class FeatureDescriptor(BaseModel):
    """Catalog entry describing one optional capability."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique feature identifier")
    title: str = Field(default="", description="Short human-readable label")
    description: str = Field(default="", description="What the feature adds")
    grants: frozenset[str] = Field(
        default_factory=frozenset,
        description="API permissions the feature requires",
    )
    host_permission: HostAccess = Field(
        default=HostAccess.NONE,
        description="Host access implied by the feature",
    )
    requires_background: bool = Field(
        default=False,
        description="Whether a background service worker must exist",
    )
    target_file: str | None = Field(
        default=None,
        description="File receiving the code fragment",
    )
    code_fragment: str | None = Field(default=None, description="Code to inject")
    marker: str | None = Field(
        default=None,
        description="Substring that proves the fragment was already injected",
    )
    manifest_patch: dict[str, Any] = Field(
        default_factory=dict,
        description="Declarative manifest changes, deep-merged",
    )
    manifest_mutator: Callable[[Manifest], Manifest] | None = Field(
        default=None,
        exclude=True,
        description="Pure manifest transformation",
    )

    @field_validator("id")
    @classmethod
    def validate_id_format(cls, v: str) -> str:
        """Validate feature ids are simple identifiers."""
        if not re.match(r"^[A-Za-z][A-Za-z0-9_-]*$", v):
            msg = "Feature id must start with a letter and use [A-Za-z0-9_-]"
            raise ValueError(msg)
        return v

    @field_validator("host_permission")
    @classmethod
    def validate_host_permission(cls, v: HostAccess) -> HostAccess:
        """Custom host patterns belong to selections, not features."""
        if v == HostAccess.CUSTOM:
            msg = "Feature host_permission must be none, active-tab or all-urls"
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def validate_injection(self) -> FeatureDescriptor:
        """Fragments need a target, markers need a fragment that contains them."""
        if self.code_fragment is not None and not self.target_file:
            msg = f"Feature '{self.id}' has a code_fragment but no target_file"
            raise ValueError(msg)
        if self.marker is not None:
            if self.code_fragment is None:
                msg = f"Feature '{self.id}' has a marker but no code_fragment"
                raise ValueError(msg)
            if self.marker not in self.code_fragment:
                msg = f"Feature '{self.id}' marker does not occur in its code_fragment"
                raise ValueError(msg)
        return self


class Identity(BaseModel):
    """Optional name/description override for a composition call."""

    model_config = ConfigDict(frozen=True)

    name: str | None = None
    description: str | None = None

    @property
    def is_empty(self) -> bool:
        return not (_filled(self.name) or _filled(self.description))


class FeatureSelection(BaseModel):
    """Everything a single composition call should apply."""

    model_config = ConfigDict(frozen=True)

    feature_ids: frozenset[str] = Field(default_factory=frozenset)
    extension_type: ExtensionType = ExtensionType.NONE
    host_access: HostAccess = HostAccess.NONE
    host_patterns: tuple[str, ...] = ()
    framework: Framework = Framework.NONE
    identity: Identity | None = None

    @field_validator("feature_ids")
    @classmethod
    def validate_feature_ids(cls, v: frozenset[str]) -> frozenset[str]:
        """Reject blank ids."""
        if any(not fid.strip() for fid in v):
            msg = "Feature ids must be non-empty strings"
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def validate_host_patterns(self) -> FeatureSelection:
        """Custom host access carries patterns; other modes carry none."""
        if self.host_access == HostAccess.CUSTOM and not self.host_patterns:
            msg = "Custom host access requires at least one host pattern"
            raise ValueError(msg)
        if self.host_access != HostAccess.CUSTOM and self.host_patterns:
            msg = "Host patterns are only allowed with custom host access"
            raise ValueError(msg)
        return self

    @property
    def is_noop(self) -> bool:
        """True when the selection cannot change a project."""
        return (
            not self.feature_ids
            and self.extension_type == ExtensionType.NONE
            and self.host_access == HostAccess.NONE
            and self.framework == Framework.NONE
            and (self.identity is None or self.identity.is_empty)
        )


class CompositionResult(BaseModel):
    """Outcome of a successful composition call."""

    model_config = ConfigDict(frozen=True)

    project: Project
    applied: tuple[str, ...] = ()


class FindingKind(str, Enum):
    """Taxonomy of manifest validation findings."""

    NOT_AN_OBJECT = "not_an_object"
    MISSING_MANIFEST_VERSION = "missing_manifest_version"
    UNSUPPORTED_MANIFEST_VERSION = "unsupported_manifest_version"
    MISSING_NAME = "missing_name"
    NAME_TOO_LONG = "name_too_long"
    MISSING_VERSION = "missing_version"
    INVALID_VERSION = "invalid_version"
    MISSING_DESCRIPTION = "missing_description"
    DESCRIPTION_TOO_LONG = "description_too_long"
    MISSING_ICONS = "missing_icons"
    MALFORMED_PERMISSIONS = "malformed_permissions"
    HOST_PATTERN_IN_PERMISSIONS = "host_pattern_in_permissions"
    BROAD_HOST_PERMISSION = "broad_host_permission"
    TABS_WITHOUT_ACTIVE_TAB = "tabs_without_active_tab"
    MISSING_SERVICE_WORKER = "missing_service_worker"
    PERSISTENT_BACKGROUND = "persistent_background"
    MALFORMED_CONTENT_SCRIPTS = "malformed_content_scripts"
    CONTENT_SCRIPT_MISSING_MATCHES = "content_script_missing_matches"
    CONTENT_SCRIPT_NO_FILES = "content_script_no_files"
    DEPRECATED_ACTION = "deprecated_action"


class Finding(BaseModel):
    """A single validation error or warning."""

    model_config = ConfigDict(frozen=True)

    kind: FindingKind
    message: str
    field: str | None = None


class ValidationReport(BaseModel):
    """Structural validity report for a manifest."""

    model_config = ConfigDict(frozen=True)

    valid: bool
    errors: tuple[Finding, ...] = ()
    warnings: tuple[Finding, ...] = ()

    def has(self, kind: FindingKind) -> bool:
        """Check whether any error or warning has ``kind``."""
        return any(f.kind == kind for f in self.errors + self.warnings)


class RiskLevel(str, Enum):
    """Coarse bucket for a permission audit score."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class PermissionAuditReport(BaseModel):
    """Heuristic permission-risk score and recommendations."""

    model_config = ConfigDict(frozen=True)

    score: int = Field(..., ge=0, le=100)
    recommendations: tuple[str, ...] = ()

    @property
    def risk_level(self) -> RiskLevel:
        if self.score >= 80:
            return RiskLevel.LOW
        if self.score >= 50:
            return RiskLevel.MEDIUM
        return RiskLevel.HIGH
