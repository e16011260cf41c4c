"""Feature catalog with duplicate checks and YAML feature-pack loading."""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from pydantic import ValidationError

from .exceptions import CatalogError, UnknownFeatureError
from .logging import get_logger
from .models import FeatureDescriptor, FeatureSelection

logger = get_logger("catalog")

FEATURE_PACK_SCHEMA = "feature-pack.schema.json"


class FeatureCatalog:
    """Immutable registry of feature descriptors keyed by id.

    Iteration follows registration order, which is also the order in which
    the composition engine applies features.
    """

    def __init__(self, descriptors: Iterable[FeatureDescriptor]) -> None:
        """Build the catalog.

        Args:
            descriptors: Feature descriptors in application order

        Raises:
            CatalogError: If an id repeats, or a marker is not unique among
                the features that share a target file
        """
        features: dict[str, FeatureDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.id in features:
                msg = f"Duplicate feature id '{descriptor.id}'"
                raise CatalogError(msg, details={"id": descriptor.id})
            features[descriptor.id] = descriptor

        self._features = features
        self._check_markers()

    def _check_markers(self) -> None:
        """Each marker must identify exactly one fragment within its target file."""
        by_target: dict[str, list[FeatureDescriptor]] = {}
        for descriptor in self._features.values():
            if descriptor.target_file and descriptor.code_fragment is not None:
                by_target.setdefault(descriptor.target_file, []).append(descriptor)

        for target, group in by_target.items():
            for descriptor in group:
                if descriptor.marker is None:
                    continue
                for other in group:
                    if other.id == descriptor.id:
                        continue
                    if other.marker == descriptor.marker or (
                        descriptor.marker in (other.code_fragment or "")
                    ):
                        msg = (
                            f"Marker of feature '{descriptor.id}' is not unique "
                            f"in {target} (clashes with '{other.id}')"
                        )
                        raise CatalogError(
                            msg,
                            details={
                                "target_file": target,
                                "features": [descriptor.id, other.id],
                            },
                        )

    def __contains__(self, feature_id: object) -> bool:
        return feature_id in self._features

    def __iter__(self) -> Iterator[FeatureDescriptor]:
        return iter(self._features.values())

    def __len__(self) -> int:
        return len(self._features)

    def ids(self) -> list[str]:
        """Feature ids in registration order."""
        return list(self._features)

    def lookup(self, feature_id: str) -> FeatureDescriptor:
        """Get a descriptor by id.

        Raises:
            UnknownFeatureError: If the id is not registered
        """
        try:
            return self._features[feature_id]
        except KeyError:
            raise UnknownFeatureError([feature_id]) from None

    def unknown(self, feature_ids: Iterable[str]) -> list[str]:
        """Return the ids that are not registered, sorted."""
        return sorted(fid for fid in set(feature_ids) if fid not in self._features)

    def resolve(self, feature_ids: Iterable[str]) -> list[FeatureDescriptor]:
        """Return descriptors for ``feature_ids`` in catalog order.

        Raises:
            UnknownFeatureError: If any id is not registered
        """
        wanted = set(feature_ids)
        missing = self.unknown(wanted)
        if missing:
            raise UnknownFeatureError(missing)
        return [d for d in self._features.values() if d.id in wanted]

    def select(self, feature_ids: Iterable[str] = (), **options: Any) -> FeatureSelection:
        """Build a FeatureSelection whose feature ids are known to this catalog.

        Args:
            feature_ids: Ids to select
            **options: Remaining FeatureSelection fields

        Raises:
            UnknownFeatureError: If any id is not registered
        """
        ids = frozenset(feature_ids)
        missing = self.unknown(ids)
        if missing:
            raise UnknownFeatureError(missing)
        return FeatureSelection(feature_ids=ids, **options)

    def merged(self, other: FeatureCatalog) -> FeatureCatalog:
        """Return a new catalog holding this catalog's features followed by ``other``'s."""
        return FeatureCatalog([*self, *other])

    @classmethod
    def from_yaml(cls, pack_path: Path) -> FeatureCatalog:
        """Load a feature pack from YAML.

        Args:
            pack_path: Path to the feature-pack YAML file

        Returns:
            Catalog holding the pack's features

        Raises:
            CatalogError: If the file cannot be read or fails validation
        """
        pack_path = Path(pack_path)
        if not pack_path.exists():
            msg = f"Feature pack not found: {pack_path}"
            raise CatalogError(msg)

        try:
            with pack_path.open(encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            msg = f"Failed to parse feature pack YAML: {e}"
            raise CatalogError(msg) from e
        except OSError as e:
            msg = f"Failed to read feature pack: {e}"
            raise CatalogError(msg) from e

        try:
            jsonschema.validate(data, _load_pack_schema())
        except jsonschema.ValidationError as e:
            msg = f"Feature pack schema validation failed: {e.message}"
            raise CatalogError(
                msg,
                details={"path": list(e.absolute_path), "pack": str(pack_path)},
            ) from e

        descriptors = []
        for index, entry in enumerate(data["features"]):
            try:
                descriptors.append(FeatureDescriptor.model_validate(entry))
            except ValidationError as e:
                msg = f"Feature #{index} in {pack_path.name} is invalid: {e}"
                raise CatalogError(msg, details={"index": index}) from e

        logger.debug("Loaded %d feature(s) from %s", len(descriptors), pack_path)
        return cls(descriptors)


@lru_cache(maxsize=1)
def _load_pack_schema() -> dict[str, Any]:
    """Load the bundled feature-pack JSON schema."""
    schema_file = resources.files("remixr") / "schemas" / FEATURE_PACK_SCHEMA
    try:
        return json.loads(schema_file.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as e:
        msg = f"Failed to load schema {FEATURE_PACK_SCHEMA}: {e}"
        raise CatalogError(msg) from e


@lru_cache(maxsize=1)
def default_catalog() -> FeatureCatalog:
    """Return the builtin catalog, built once per process."""
    from .features import BUILTIN_FEATURES

    return FeatureCatalog(BUILTIN_FEATURES)
