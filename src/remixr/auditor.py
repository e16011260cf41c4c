"""Heuristic permission-risk scoring for extension manifests."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .models import Manifest, PermissionAuditReport
from .permissions import (
    ACTIVE_TAB,
    COOKIES,
    HISTORY,
    STORAGE,
    TABS,
    UNLIMITED_STORAGE,
    broad_host_patterns,
)

MAX_SCORE = 100

BROAD_HOST_DEDUCTION = 30
TABS_WITHOUT_ACTIVE_TAB_DEDUCTION = 15
HISTORY_DEDUCTION = 10
COOKIES_DEDUCTION = 10

MINIMAL_PERMISSIONS = "Minimal permissions: the extension requests no permissions or host access."


def _string_entries(data: Mapping[str, Any], key: str) -> list[str]:
    """Read a permission list leniently; malformed values count as empty."""
    value = data.get(key)
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str)]


def audit(manifest: Manifest | Mapping[str, Any] | Any) -> PermissionAuditReport:
    """Score how much access a manifest requests.

    Starts at 100 and deducts for risky grants; never below 0. Good practices
    add recommendations without changing the score.

    Args:
        manifest: Parsed Manifest or a raw mapping loaded from JSON

    Returns:
        Score in [0, 100] with recommendations
    """
    data = manifest.to_dict() if isinstance(manifest, Manifest) else manifest
    if not isinstance(data, Mapping):
        data = {}

    permissions = _string_entries(data, "permissions")
    hosts = _string_entries(data, "host_permissions")

    if not permissions and not hosts:
        return PermissionAuditReport(score=MAX_SCORE, recommendations=(MINIMAL_PERMISSIONS,))

    score = MAX_SCORE
    recommendations: list[str] = []

    broad = broad_host_patterns(hosts)
    if broad:
        score -= BROAD_HOST_DEDUCTION
        recommendations.append(
            f"Broad host access ({', '.join(broad)}) lets the extension read and change "
            "every site; list specific origins or use activeTab instead.",
        )

    if TABS in permissions and ACTIVE_TAB not in permissions:
        score -= TABS_WITHOUT_ACTIVE_TAB_DEDUCTION
        recommendations.append(
            "'tabs' exposes URLs and titles of every tab; 'activeTab' is usually enough.",
        )

    if HISTORY in permissions:
        score -= HISTORY_DEDUCTION
        recommendations.append(
            "'history' reveals the user's browsing history; request it only if essential.",
        )

    if COOKIES in permissions:
        score -= COOKIES_DEDUCTION
        recommendations.append(
            "'cookies' can expose session tokens; scope host permissions tightly.",
        )

    if ACTIVE_TAB in permissions:
        recommendations.append(
            "Good: 'activeTab' grants access only when the user invokes the extension.",
        )

    if STORAGE in permissions and UNLIMITED_STORAGE not in permissions:
        recommendations.append(
            "Good: 'storage' is used within the default quota.",
        )

    return PermissionAuditReport(score=max(score, 0), recommendations=tuple(recommendations))
