"""Tests for ReMixr data models."""

import json

import pytest
from pydantic import ValidationError

from remixr.composer import compose
from remixr.exceptions import CompositionError, ManifestParseError
from remixr.models import (
    FeatureDescriptor,
    FeatureSelection,
    HostAccess,
    Identity,
    Manifest,
    PermissionAuditReport,
    Project,
    RiskLevel,
)


class TestManifest:
    """Test Manifest parsing and pure updates."""

    def test_from_json_preserves_unknown_keys(self) -> None:
        """Test unknown manifest keys survive a parse/serialize cycle."""
        text = json.dumps({
            "manifest_version": 3,
            "name": "X",
            "version": "1.0.0",
            "minimum_chrome_version": "120",
        })
        manifest = Manifest.from_json(text)
        assert manifest.to_dict()["minimum_chrome_version"] == "120"

    def test_unset_fields_are_not_serialized(self) -> None:
        """Test that absent keys stay absent."""
        manifest = Manifest.from_json('{"manifest_version": 3, "name": "X", "version": "1.0.0"}')
        data = manifest.to_dict()
        assert "permissions" not in data
        assert "background" not in data

    def test_permissions_are_deduplicated(self) -> None:
        """Test duplicate permissions collapse keeping first-seen order."""
        manifest = Manifest.model_validate({
            "permissions": ["storage", "tabs", "storage"],
        })
        assert manifest.permissions == ("storage", "tabs")

    def test_with_permissions_returns_new_value(self) -> None:
        """Test that adding permissions never mutates the original."""
        manifest = Manifest.model_validate({"permissions": ["tabs"]})
        updated = manifest.with_permissions("storage", "tabs")
        assert updated.permissions == ("tabs", "storage")
        assert manifest.permissions == ("tabs",)

    def test_with_permissions_noop_keeps_identity(self) -> None:
        """Test that a no-change union returns the same manifest."""
        manifest = Manifest.model_validate({"permissions": ["tabs"]})
        assert manifest.with_permissions("tabs") is manifest
        assert manifest.with_host_permissions() is manifest

    def test_manifest_is_frozen(self) -> None:
        """Test manifests cannot be changed in place."""
        manifest = Manifest.model_validate({"name": "X"})
        with pytest.raises(ValidationError):
            manifest.name = "Y"

    def test_to_json_is_deterministic(self) -> None:
        """Test serialization is stable and newline-terminated."""
        manifest = Manifest.model_validate({"name": "X", "manifest_version": 3})
        assert manifest.to_json() == manifest.to_json()
        assert manifest.to_json().endswith("}\n")

    def test_invalid_json_raises_parse_error(self) -> None:
        """Test malformed JSON is reported as a parse error."""
        with pytest.raises(ManifestParseError, match="not valid JSON"):
            Manifest.from_json("{not json")

    def test_non_object_raises_parse_error(self) -> None:
        """Test a JSON array is rejected."""
        with pytest.raises(ManifestParseError, match="JSON object"):
            Manifest.from_json("[1, 2]")

    def test_mistyped_fields_are_kept(self) -> None:
        """Test valid JSON with wrongly typed fields parses and round-trips."""
        text = json.dumps({
            "manifest_version": 3,
            "name": "X",
            "version": 1,
            "permissions": "storage",
            "action": "popup.html",
        })
        manifest = Manifest.from_json(text)
        assert manifest.to_dict() == json.loads(text)
        assert manifest.entries("permissions") == ("storage",)
        assert manifest.section("action") is None

    def test_mistyped_manifest_composes(self) -> None:
        """Test compose accepts a manifest whose fields have the wrong types."""
        project = Project(
            name="X",
            files={"manifest.json": '{"manifest_version": 3, "name": "X", "version": 1}'},
        )
        result = compose(project, FeatureSelection(feature_ids=frozenset({"storage"})))
        manifest = json.loads(result.project.files["manifest.json"])
        assert manifest["version"] == 1
        assert manifest["permissions"] == ["storage"]

    def test_with_permissions_on_bare_string(self) -> None:
        """Test a single-string permission value is extended as one entry."""
        manifest = Manifest.model_validate({"permissions": "storage"})
        assert manifest.with_permissions("storage") is manifest
        assert manifest.with_permissions("tabs").permissions == ("storage", "tabs")

    def test_with_permissions_on_object_raises(self) -> None:
        """Test entries cannot be added to an object-valued permission field."""
        manifest = Manifest.model_validate({"permissions": {"storage": True}})
        with pytest.raises(CompositionError, match="it is not a list") as exc_info:
            manifest.with_permissions("tabs")
        assert exc_info.value.step == "mutate"


class TestProject:
    """Test Project helpers."""

    def test_missing_manifest(self) -> None:
        """Test a project without manifest.json cannot be parsed."""
        project = Project(name="Empty", files={"popup.js": ""})
        with pytest.raises(ManifestParseError) as exc_info:
            project.manifest()
        assert exc_info.value.step == "parse"

    def test_with_files_copies(self) -> None:
        """Test with_files does not share the mapping."""
        files = {"manifest.json": "{}"}
        project = Project(name="P", files=files)
        copy = project.with_files(files, name="Q")
        files["extra.js"] = ""
        assert "extra.js" not in copy.files
        assert copy.name == "Q"


class TestFeatureDescriptor:
    """Test FeatureDescriptor validation."""

    def test_valid_descriptor(self) -> None:
        """Test creating a valid descriptor."""
        descriptor = FeatureDescriptor(
            id="idle",
            grants=frozenset({"idle"}),
            target_file="background.js",
            code_fragment="chrome.idle.onStateChanged.addListener(() => {});",
            marker="chrome.idle.onStateChanged",
        )
        assert descriptor.host_permission == HostAccess.NONE

    def test_invalid_id(self) -> None:
        """Test ids must be simple identifiers."""
        with pytest.raises(ValidationError, match="Feature id must start with a letter"):
            FeatureDescriptor(id="1 bad id")

    def test_fragment_requires_target(self) -> None:
        """Test a code fragment needs a target file."""
        with pytest.raises(ValidationError, match="no target_file"):
            FeatureDescriptor(id="orphan", code_fragment="console.log(1);")

    def test_marker_must_occur_in_fragment(self) -> None:
        """Test the marker can actually detect the fragment."""
        with pytest.raises(ValidationError, match="marker does not occur"):
            FeatureDescriptor(
                id="mismatch",
                target_file="popup.js",
                code_fragment="function a() {}",
                marker="function b(",
            )

    def test_custom_host_permission_rejected(self) -> None:
        """Test features cannot carry custom host patterns."""
        with pytest.raises(ValidationError, match="must be none, active-tab or all-urls"):
            FeatureDescriptor(id="hosts", host_permission=HostAccess.CUSTOM)


class TestFeatureSelection:
    """Test FeatureSelection validation."""

    def test_default_selection_is_noop(self) -> None:
        """Test an empty selection changes nothing."""
        assert FeatureSelection().is_noop

    def test_identity_makes_selection_effective(self) -> None:
        """Test a non-empty identity is a change."""
        selection = FeatureSelection(identity=Identity(name="New"))
        assert not selection.is_noop

    def test_empty_identity_is_noop(self) -> None:
        """Test blank identity fields do not count as a change."""
        selection = FeatureSelection(identity=Identity(name="", description=None))
        assert selection.is_noop

    def test_whitespace_identity_is_noop(self) -> None:
        """Test whitespace-only identity fields do not count as a change."""
        selection = FeatureSelection(identity=Identity(name="   ", description="\t\n"))
        assert selection.identity.is_empty
        assert selection.is_noop

    def test_custom_host_requires_patterns(self) -> None:
        """Test custom host access needs patterns."""
        with pytest.raises(ValidationError, match="requires at least one host pattern"):
            FeatureSelection(host_access=HostAccess.CUSTOM)

    def test_patterns_require_custom_host(self) -> None:
        """Test patterns are rejected for other host modes."""
        with pytest.raises(ValidationError, match="only allowed with custom host access"):
            FeatureSelection(
                host_access=HostAccess.ALL_URLS,
                host_patterns=("https://example.com/*",),
            )

    def test_blank_feature_id_rejected(self) -> None:
        """Test blank ids are rejected at construction."""
        with pytest.raises(ValidationError, match="non-empty strings"):
            FeatureSelection(feature_ids=frozenset({" "}))


class TestPermissionAuditReport:
    """Test audit report bounds and risk buckets."""

    def test_score_bounds_enforced(self) -> None:
        """Test scores outside [0, 100] are rejected."""
        with pytest.raises(ValidationError):
            PermissionAuditReport(score=101)
        with pytest.raises(ValidationError):
            PermissionAuditReport(score=-1)

    @pytest.mark.parametrize(
        ("score", "level"),
        [(100, RiskLevel.LOW), (80, RiskLevel.LOW), (70, RiskLevel.MEDIUM), (45, RiskLevel.HIGH)],
    )
    def test_risk_level(self, score: int, level: RiskLevel) -> None:
        """Test score to risk-level bucketing."""
        assert PermissionAuditReport(score=score).risk_level == level
