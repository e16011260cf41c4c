"""Tests for ManifestValidator."""

import pytest

from remixr.models import FindingKind, Manifest
from remixr.validator import ManifestValidator, validate


@pytest.fixture
def valid_manifest() -> dict:
    """Create a manifest that passes every rule."""
    return {
        "manifest_version": 3,
        "name": "Clean Extension",
        "version": "1.0.0",
        "description": "Does one small thing well",
        "icons": {"128": "icons/icon128.png"},
        "permissions": ["storage", "activeTab"],
        "background": {"service_worker": "background.js"},
        "content_scripts": [{"matches": ["https://example.com/*"], "js": ["content.js"]}],
    }


class TestManifestValidator:
    """Test the structural rules."""

    def test_valid_manifest(self, valid_manifest: dict) -> None:
        """Test a clean manifest has no findings."""
        report = ManifestValidator().validate(valid_manifest)
        assert report.valid
        assert report.errors == ()
        assert report.warnings == ()

    def test_accepts_parsed_manifest(self, valid_manifest: dict) -> None:
        """Test a Manifest model validates the same as its mapping."""
        report = validate(Manifest.model_validate(valid_manifest))
        assert report.valid

    def test_missing_manifest_version(self) -> None:
        """Test a manifest without manifest_version is invalid."""
        report = validate({"name": "X", "version": "1.0"})
        assert not report.valid
        assert report.has(FindingKind.MISSING_MANIFEST_VERSION)

    @pytest.mark.parametrize("version", [2, "3", True])
    def test_unsupported_manifest_version(self, valid_manifest: dict, version: object) -> None:
        """Test only the integer 3 is accepted."""
        valid_manifest["manifest_version"] = version
        report = validate(valid_manifest)
        assert not report.valid
        assert report.has(FindingKind.UNSUPPORTED_MANIFEST_VERSION)

    @pytest.mark.parametrize("name", [None, "", "   ", 42])
    def test_missing_name(self, valid_manifest: dict, name: object) -> None:
        """Test missing or blank names are errors."""
        valid_manifest["name"] = name
        report = validate(valid_manifest)
        assert report.has(FindingKind.MISSING_NAME)
        assert not report.valid

    def test_long_name_is_warning(self, valid_manifest: dict) -> None:
        """Test long names only warn."""
        valid_manifest["name"] = "N" * 46
        report = validate(valid_manifest)
        assert report.valid
        assert report.has(FindingKind.NAME_TOO_LONG)

    def test_missing_version(self, valid_manifest: dict) -> None:
        """Test version is required."""
        del valid_manifest["version"]
        assert validate(valid_manifest).has(FindingKind.MISSING_VERSION)

    @pytest.mark.parametrize("version", ["1.0.0.0.0", "v1", "1..0", "", 1, "1.70000"])
    def test_invalid_version(self, valid_manifest: dict, version: object) -> None:
        """Test malformed version strings are errors."""
        valid_manifest["version"] = version
        report = validate(valid_manifest)
        assert not report.valid
        assert report.has(FindingKind.INVALID_VERSION)

    @pytest.mark.parametrize("version", ["1", "1.2", "1.2.3", "1.2.3.4", "65535.0"])
    def test_valid_versions(self, valid_manifest: dict, version: str) -> None:
        """Test one to four numeric components are accepted."""
        valid_manifest["version"] = version
        assert validate(valid_manifest).valid

    def test_description_warnings(self, valid_manifest: dict) -> None:
        """Test description problems only warn."""
        del valid_manifest["description"]
        report = validate(valid_manifest)
        assert report.valid
        assert report.has(FindingKind.MISSING_DESCRIPTION)

        valid_manifest["description"] = "d" * 133
        assert validate(valid_manifest).has(FindingKind.DESCRIPTION_TOO_LONG)

    def test_missing_icons_warning(self, valid_manifest: dict) -> None:
        """Test absent icons are advisory."""
        del valid_manifest["icons"]
        report = validate(valid_manifest)
        assert report.valid
        assert report.has(FindingKind.MISSING_ICONS)

    def test_malformed_permissions(self, valid_manifest: dict) -> None:
        """Test permissions must be a list of strings."""
        valid_manifest["permissions"] = "storage"
        valid_manifest["host_permissions"] = [1, 2]
        report = validate(valid_manifest)
        kinds = [f.kind for f in report.errors]
        assert kinds.count(FindingKind.MALFORMED_PERMISSIONS) == 2

    def test_host_pattern_in_permissions(self, valid_manifest: dict) -> None:
        """Test host patterns listed under permissions are flagged."""
        valid_manifest["permissions"] = ["storage", "https://example.com/*"]
        report = validate(valid_manifest)
        assert report.has(FindingKind.HOST_PATTERN_IN_PERMISSIONS)

    @pytest.mark.parametrize(
        "hosts",
        [["<all_urls>"], ["*://*/*"], ["http://*/*", "https://*/*"]],
    )
    def test_broad_host_permission(self, valid_manifest: dict, hosts: list) -> None:
        """Test site-wide host access warns."""
        valid_manifest["host_permissions"] = hosts
        report = validate(valid_manifest)
        assert report.valid
        assert report.has(FindingKind.BROAD_HOST_PERMISSION)

    def test_specific_hosts_not_broad(self, valid_manifest: dict) -> None:
        """Test a single scheme wildcard is not broad on its own."""
        valid_manifest["host_permissions"] = ["https://*/*"]
        assert not validate(valid_manifest).has(FindingKind.BROAD_HOST_PERMISSION)

    def test_tabs_without_active_tab(self, valid_manifest: dict) -> None:
        """Test tabs without activeTab warns."""
        valid_manifest["permissions"] = ["tabs"]
        assert validate(valid_manifest).has(FindingKind.TABS_WITHOUT_ACTIVE_TAB)

    def test_background_without_service_worker(self, valid_manifest: dict) -> None:
        """Test a background block needs a service worker."""
        valid_manifest["background"] = {"scripts": ["bg.js"]}
        report = validate(valid_manifest)
        assert not report.valid
        assert report.has(FindingKind.MISSING_SERVICE_WORKER)

    def test_persistent_background(self, valid_manifest: dict) -> None:
        """Test persistent background pages are rejected."""
        valid_manifest["background"] = {"service_worker": "bg.js", "persistent": False}
        assert validate(valid_manifest).has(FindingKind.PERSISTENT_BACKGROUND)

    def test_content_script_rules(self, valid_manifest: dict) -> None:
        """Test content script entries need matches and files."""
        valid_manifest["content_scripts"] = [{"matches": []}, "content.js"]
        report = validate(valid_manifest)
        assert report.has(FindingKind.CONTENT_SCRIPT_MISSING_MATCHES)
        assert report.has(FindingKind.CONTENT_SCRIPT_NO_FILES)
        assert report.has(FindingKind.MALFORMED_CONTENT_SCRIPTS)

    @pytest.mark.parametrize("key", ["browser_action", "page_action"])
    def test_deprecated_action_keys(self, valid_manifest: dict, key: str) -> None:
        """Test manifest version 2 action keys are errors."""
        valid_manifest[key] = {"default_popup": "popup.html"}
        report = validate(valid_manifest)
        assert not report.valid
        assert report.has(FindingKind.DEPRECATED_ACTION)

    def test_errors_are_collected_together(self) -> None:
        """Test all problems are reported in one pass."""
        report = validate({"background": {}})
        kinds = {f.kind for f in report.errors}
        assert {
            FindingKind.MISSING_MANIFEST_VERSION,
            FindingKind.MISSING_NAME,
            FindingKind.MISSING_VERSION,
            FindingKind.MISSING_SERVICE_WORKER,
        } <= kinds


class TestValidationIsTotal:
    """Test validation never raises."""

    @pytest.mark.parametrize("value", [None, [], "manifest", 3, 1.5])
    def test_non_object_input(self, value: object) -> None:
        """Test non-objects produce a single error."""
        report = validate(value)
        assert not report.valid
        assert [f.kind for f in report.errors] == [FindingKind.NOT_AN_OBJECT]

    def test_nested_garbage(self) -> None:
        """Test wrongly typed nested values are findings, not exceptions."""
        report = validate({
            "manifest_version": 3,
            "name": "X",
            "version": "1.0",
            "background": "bg.js",
            "content_scripts": {"matches": []},
            "permissions": None,
        })
        assert not report.valid
        assert report.has(FindingKind.MISSING_SERVICE_WORKER)
        assert report.has(FindingKind.MALFORMED_CONTENT_SCRIPTS)
        assert report.has(FindingKind.MALFORMED_PERMISSIONS)
