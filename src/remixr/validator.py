"""Structural validation of extension manifests."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from .models import Finding, FindingKind, Manifest, ValidationReport
from .permissions import ACTIVE_TAB, TABS, broad_host_patterns, is_host_pattern

SUPPORTED_MANIFEST_VERSION = 3
MAX_NAME_LENGTH = 45
MAX_DESCRIPTION_LENGTH = 132
MAX_VERSION_COMPONENT = 65535
DEPRECATED_ACTION_KEYS = ("browser_action", "page_action")

_VERSION_PATTERN = re.compile(r"^\d+(\.\d+){0,3}$")


def _is_string_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


class ManifestValidator:
    """Checks a manifest against the version-3 structural rules.

    Validation is total: any input, including non-objects, yields a report
    and never raises.
    """

    def validate(self, manifest: Manifest | Mapping[str, Any] | Any) -> ValidationReport:
        """Validate a manifest.

        Args:
            manifest: Parsed Manifest or a raw mapping loaded from JSON

        Returns:
            Report with errors (blocking) and warnings (advisory)
        """
        errors: list[Finding] = []
        warnings: list[Finding] = []

        if isinstance(manifest, Manifest):
            data: Any = manifest.to_dict()
        else:
            data = manifest

        if not isinstance(data, Mapping):
            errors.append(Finding(
                kind=FindingKind.NOT_AN_OBJECT,
                message="Manifest must be a JSON object",
            ))
            return ValidationReport(valid=False, errors=tuple(errors))

        self._check_manifest_version(data, errors)
        self._check_name(data, errors, warnings)
        self._check_version(data, errors)
        self._check_description(data, warnings)

        if "icons" not in data:
            warnings.append(Finding(
                kind=FindingKind.MISSING_ICONS,
                message="No icons declared; the browser will show a default icon",
                field="icons",
            ))

        self._check_permissions(data, errors, warnings)
        self._check_background(data, errors)
        self._check_content_scripts(data, errors, warnings)

        for key in DEPRECATED_ACTION_KEYS:
            if key in data:
                errors.append(Finding(
                    kind=FindingKind.DEPRECATED_ACTION,
                    message=f"'{key}' is not supported in manifest version 3; use 'action'",
                    field=key,
                ))

        return ValidationReport(
            valid=not errors,
            errors=tuple(errors),
            warnings=tuple(warnings),
        )

    def _check_manifest_version(self, data: Mapping[str, Any], errors: list[Finding]) -> None:
        if "manifest_version" not in data:
            errors.append(Finding(
                kind=FindingKind.MISSING_MANIFEST_VERSION,
                message="Missing manifest_version",
                field="manifest_version",
            ))
            return

        value = data["manifest_version"]
        if isinstance(value, bool) or value != SUPPORTED_MANIFEST_VERSION:
            errors.append(Finding(
                kind=FindingKind.UNSUPPORTED_MANIFEST_VERSION,
                message=(
                    f"manifest_version must be {SUPPORTED_MANIFEST_VERSION}, "
                    f"got {value!r}"
                ),
                field="manifest_version",
            ))

    def _check_name(
        self,
        data: Mapping[str, Any],
        errors: list[Finding],
        warnings: list[Finding],
    ) -> None:
        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            errors.append(Finding(
                kind=FindingKind.MISSING_NAME,
                message="Missing or empty name",
                field="name",
            ))
        elif len(name) > MAX_NAME_LENGTH:
            warnings.append(Finding(
                kind=FindingKind.NAME_TOO_LONG,
                message=f"name is {len(name)} characters; keep it under {MAX_NAME_LENGTH}",
                field="name",
            ))

    def _check_version(self, data: Mapping[str, Any], errors: list[Finding]) -> None:
        if "version" not in data:
            errors.append(Finding(
                kind=FindingKind.MISSING_VERSION,
                message="Missing version",
                field="version",
            ))
            return

        version = data["version"]
        if not isinstance(version, str) or not _VERSION_PATTERN.match(version):
            errors.append(Finding(
                kind=FindingKind.INVALID_VERSION,
                message=(
                    f"version {version!r} must be one to four dot-separated integers "
                    "(e.g. 1.0.0)"
                ),
                field="version",
            ))
            return

        if any(int(part) > MAX_VERSION_COMPONENT for part in version.split(".")):
            errors.append(Finding(
                kind=FindingKind.INVALID_VERSION,
                message=f"version components must not exceed {MAX_VERSION_COMPONENT}",
                field="version",
            ))

    def _check_description(self, data: Mapping[str, Any], warnings: list[Finding]) -> None:
        description = data.get("description")
        if not isinstance(description, str) or not description:
            warnings.append(Finding(
                kind=FindingKind.MISSING_DESCRIPTION,
                message="Missing description",
                field="description",
            ))
        elif len(description) > MAX_DESCRIPTION_LENGTH:
            warnings.append(Finding(
                kind=FindingKind.DESCRIPTION_TOO_LONG,
                message=(
                    f"description is {len(description)} characters; "
                    f"the store limit is {MAX_DESCRIPTION_LENGTH}"
                ),
                field="description",
            ))

    def _check_permissions(
        self,
        data: Mapping[str, Any],
        errors: list[Finding],
        warnings: list[Finding],
    ) -> None:
        permissions: list[str] = []
        hosts: list[str] = []

        for key, target in (("permissions", permissions), ("host_permissions", hosts)):
            if key not in data:
                continue
            value = data[key]
            if not _is_string_list(value):
                errors.append(Finding(
                    kind=FindingKind.MALFORMED_PERMISSIONS,
                    message=f"{key} must be a list of strings",
                    field=key,
                ))
                continue
            target.extend(value)

        misplaced = [p for p in permissions if is_host_pattern(p)]
        if misplaced:
            warnings.append(Finding(
                kind=FindingKind.HOST_PATTERN_IN_PERMISSIONS,
                message=(
                    "Host patterns belong in host_permissions: "
                    + ", ".join(misplaced)
                ),
                field="permissions",
            ))

        broad = broad_host_patterns(hosts)
        if broad:
            warnings.append(Finding(
                kind=FindingKind.BROAD_HOST_PERMISSION,
                message=(
                    "host_permissions grant access to every site ("
                    + ", ".join(broad)
                    + "); request specific origins or rely on activeTab"
                ),
                field="host_permissions",
            ))

        if TABS in permissions and ACTIVE_TAB not in permissions:
            warnings.append(Finding(
                kind=FindingKind.TABS_WITHOUT_ACTIVE_TAB,
                message="'tabs' requested without 'activeTab'; prefer the narrower activeTab",
                field="permissions",
            ))

    def _check_background(self, data: Mapping[str, Any], errors: list[Finding]) -> None:
        if "background" not in data:
            return

        background = data["background"]
        if not isinstance(background, Mapping):
            errors.append(Finding(
                kind=FindingKind.MISSING_SERVICE_WORKER,
                message="background must be an object declaring service_worker",
                field="background",
            ))
            return

        worker = background.get("service_worker")
        if not isinstance(worker, str) or not worker:
            errors.append(Finding(
                kind=FindingKind.MISSING_SERVICE_WORKER,
                message="background is declared without a service_worker",
                field="background.service_worker",
            ))
        if "persistent" in background:
            errors.append(Finding(
                kind=FindingKind.PERSISTENT_BACKGROUND,
                message="background.persistent is not supported by manifest version 3",
                field="background.persistent",
            ))

    def _check_content_scripts(
        self,
        data: Mapping[str, Any],
        errors: list[Finding],
        warnings: list[Finding],
    ) -> None:
        if "content_scripts" not in data:
            return

        scripts = data["content_scripts"]
        if not isinstance(scripts, list):
            errors.append(Finding(
                kind=FindingKind.MALFORMED_CONTENT_SCRIPTS,
                message="content_scripts must be a list",
                field="content_scripts",
            ))
            return

        for index, entry in enumerate(scripts):
            field = f"content_scripts[{index}]"
            if not isinstance(entry, Mapping):
                errors.append(Finding(
                    kind=FindingKind.MALFORMED_CONTENT_SCRIPTS,
                    message=f"{field} must be an object",
                    field=field,
                ))
                continue

            matches = entry.get("matches")
            if not _is_string_list(matches) or not matches:
                errors.append(Finding(
                    kind=FindingKind.CONTENT_SCRIPT_MISSING_MATCHES,
                    message=f"{field} must declare a non-empty matches list",
                    field=f"{field}.matches",
                ))
            if not entry.get("js") and not entry.get("css"):
                warnings.append(Finding(
                    kind=FindingKind.CONTENT_SCRIPT_NO_FILES,
                    message=f"{field} declares neither js nor css",
                    field=field,
                ))


def validate(manifest: Manifest | Mapping[str, Any] | Any) -> ValidationReport:
    """Validate a manifest with the default rule set."""
    return ManifestValidator().validate(manifest)
