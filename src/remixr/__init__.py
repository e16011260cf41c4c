"""ReMixr: feature composition and manifest validation for browser extensions."""

__version__ = "0.1.0"
__author__ = "ReMixr Contributors"
__description__ = "Feature composition and manifest validation for browser extensions"

from .auditor import audit
from .catalog import FeatureCatalog, default_catalog
from .composer import CompositionEngine, compose
from .models import (
    CompositionResult,
    ExtensionType,
    FeatureDescriptor,
    FeatureSelection,
    Framework,
    HostAccess,
    Identity,
    Manifest,
    PermissionAuditReport,
    Project,
    ValidationReport,
)
from .validator import ManifestValidator, validate

__all__ = [
    "CompositionEngine",
    "CompositionResult",
    "ExtensionType",
    "FeatureCatalog",
    "FeatureDescriptor",
    "FeatureSelection",
    "Framework",
    "HostAccess",
    "Identity",
    "Manifest",
    "ManifestValidator",
    "PermissionAuditReport",
    "Project",
    "ValidationReport",
    "audit",
    "compose",
    "default_catalog",
    "validate",
]
