"""Composition engine that merges a feature selection into a project."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Any

from .catalog import FeatureCatalog, default_catalog
from .exceptions import CompositionError
from .logging import get_logger
from .models import (
    MANIFEST_FILE,
    CompositionResult,
    ExtensionType,
    FeatureDescriptor,
    FeatureSelection,
    Framework,
    HostAccess,
    Manifest,
    Project,
)
from .permissions import ACTIVE_TAB, ALL_URLS, SIDE_PANEL
from .scaffold import (
    BACKGROUND_HEADER,
    CONTENT_SCRIPT_FILE,
    content_script_boilerplate,
    framework_files,
    page_html,
    page_script,
)

logger = get_logger("composer")

BACKGROUND_FILE = "background.js"
POPUP_PAGE = "popup.html"
SIDE_PANEL_PAGE = "sidepanel.html"
SENTINEL_TAG = "remixr"

_COMMENT_STYLES = {
    ".css": ("/* ", " */"),
    ".html": ("<!-- ", " -->"),
    ".htm": ("<!-- ", " -->"),
}


def sentinels(feature_id: str, target_file: str) -> tuple[str, str]:
    """Return the begin/end comment lines delimiting an injected fragment."""
    suffix = PurePosixPath(target_file).suffix.lower()
    opener, closer = _COMMENT_STYLES.get(suffix, ("// ", ""))
    return (
        f"{opener}{SENTINEL_TAG}:begin {feature_id}{closer}",
        f"{opener}{SENTINEL_TAG}:end {feature_id}{closer}",
    )


def _deep_merge(base: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    """Merge ``patch`` into ``base``; dicts recurse, lists union, scalars overwrite."""
    merged = dict(base)
    for key, value in patch.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(current, value)
        elif isinstance(current, list) and isinstance(value, list):
            merged[key] = current + [v for v in value if v not in current]
        else:
            merged[key] = value
    return merged


def _script_for(page: str) -> str:
    """Script that sits next to an HTML entry page (popup.html -> popup.js)."""
    return str(PurePosixPath(page).with_suffix(".js"))


def _is_page(value: Any) -> bool:
    """Whether a manifest entry-page value names a usable file."""
    return (
        isinstance(value, str)
        and bool(value.strip())
        and PurePosixPath(value).name not in ("", "..")
    )


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _section(manifest: Manifest, key: str) -> dict[str, Any]:
    """Object-valued manifest key that composition is about to write."""
    section = manifest.section(key)
    if section is None:
        msg = f"Manifest '{key}' must be an object to be updated"
        raise CompositionError(msg, details={"field": key}, step="mutate")
    return section


def _service_worker(manifest: Manifest) -> str | None:
    worker = (manifest.section("background") or {}).get("service_worker")
    return worker if _is_text(worker) else None


class CompositionEngine:
    """Applies feature selections to projects.

    The engine keeps no per-call state: every ``compose`` call is a pure
    function of the project and selection it receives. Inputs are never
    mutated; a failed call leaves the caller's project exactly as it was.

    Framework overrides are the one destructive step. When a framework is
    selected, the entry UI files are regenerated wholesale and any manual
    edits to them are discarded. Selected features that inject into those
    files are re-applied on top of the fresh boilerplate.
    """

    def __init__(self, catalog: FeatureCatalog | None = None) -> None:
        """Initialize engine with a feature catalog.

        Args:
            catalog: Feature catalog, defaults to the builtin catalog
        """
        self.catalog = catalog if catalog is not None else default_catalog()

    def compose(self, project: Project, selection: FeatureSelection) -> CompositionResult:
        """Merge ``selection`` into ``project``.

        Args:
            project: Project to update (left untouched)
            selection: Features and options to apply

        Returns:
            New project and the ids of the applied features in catalog order

        Raises:
            ManifestParseError: If manifest.json is missing or malformed
            UnknownFeatureError: If the selection names unregistered features
            CompositionError: If a feature's manifest change is unusable
        """
        manifest = project.manifest()
        descriptors = self.catalog.resolve(selection.feature_ids)

        if selection.is_noop:
            logger.debug("Empty selection for %s, nothing to compose", project.name)
            return CompositionResult(project=project.with_files(project.files))

        files = dict(project.files)
        title = self._effective_name(project, manifest, selection)

        manifest = self._apply_extension_type(manifest, files, selection, title)
        manifest = self._apply_manifest_changes(manifest, descriptors)
        manifest = self._merge_permissions(manifest, descriptors, selection)

        if any(d.requires_background for d in descriptors):
            manifest = self._ensure_background(manifest, files)

        if selection.framework != Framework.NONE:
            self._apply_framework(manifest, files, selection.framework, title)

        for descriptor in descriptors:
            self._inject(descriptor, manifest, files)

        name = project.name
        if selection.identity is not None:
            manifest, name = self._apply_identity(manifest, name, selection)

        files[MANIFEST_FILE] = manifest.to_json()
        applied = tuple(d.id for d in descriptors)
        logger.info(
            "Composed '%s': %d feature(s) applied, %d file(s)",
            name,
            len(applied),
            len(files),
        )
        return CompositionResult(project=Project(name=name, files=files), applied=applied)

    def _effective_name(
        self,
        project: Project,
        manifest: Manifest,
        selection: FeatureSelection,
    ) -> str:
        if selection.identity is not None and _is_text(selection.identity.name):
            return selection.identity.name
        return manifest.name if _is_text(manifest.name) else project.name

    def _apply_extension_type(
        self,
        manifest: Manifest,
        files: dict[str, str],
        selection: FeatureSelection,
        title: str,
    ) -> Manifest:
        """Write the manifest shape for the selected extension type.

        Only the chosen type's fields change; a shape configured by an earlier
        call for another type stays in place. Blank or non-string entry pages
        count as absent.
        """
        ext_type = selection.extension_type

        if ext_type == ExtensionType.CONTENT_SCRIPT:
            existing = manifest.content_scripts or []
            if not isinstance(existing, list):
                msg = "Manifest 'content_scripts' must be a list to add a content script"
                raise CompositionError(
                    msg,
                    details={"field": "content_scripts"},
                    step="mutate",
                )
            loads_script = any(
                isinstance(entry, dict)
                and isinstance(entry.get("js"), list)
                and CONTENT_SCRIPT_FILE in entry["js"]
                for entry in existing
            )
            if not loads_script:
                if selection.host_access == HostAccess.CUSTOM:
                    matches = list(selection.host_patterns)
                else:
                    matches = [ALL_URLS]
                entry = {
                    "matches": matches,
                    "js": [CONTENT_SCRIPT_FILE],
                    "run_at": "document_idle",
                }
                manifest = manifest.updated(content_scripts=[*existing, entry])
            files.setdefault(CONTENT_SCRIPT_FILE, content_script_boilerplate(title))

        elif ext_type == ExtensionType.POPUP:
            action = _section(manifest, "action")
            if not _is_page(action.get("default_popup")):
                action["default_popup"] = POPUP_PAGE
            if action != manifest.action:
                manifest = manifest.updated(action=action)
            self._ensure_page(files, action["default_popup"], title)

        elif ext_type == ExtensionType.SIDE_PANEL:
            side_panel = _section(manifest, "side_panel")
            if not _is_page(side_panel.get("default_path")):
                side_panel["default_path"] = SIDE_PANEL_PAGE
            if side_panel != manifest.side_panel:
                manifest = manifest.updated(side_panel=side_panel)
            manifest = manifest.with_permissions(SIDE_PANEL)
            self._ensure_page(files, side_panel["default_path"], title)

        elif ext_type == ExtensionType.PAGE_ACTION:
            action = _section(manifest, "action")
            if not _is_text(action.get("default_title")):
                action["default_title"] = title
            if action != manifest.action:
                manifest = manifest.updated(action=action)

        return manifest

    def _ensure_page(self, files: dict[str, str], page: str, title: str) -> None:
        script = _script_for(page)
        files.setdefault(page, page_html(title, PurePosixPath(script).name))
        files.setdefault(script, page_script(title))

    def _apply_manifest_changes(
        self,
        manifest: Manifest,
        descriptors: list[FeatureDescriptor],
    ) -> Manifest:
        """Run descriptor patches and mutators without dropping permissions."""
        original_permissions = manifest.entries("permissions")
        original_hosts = manifest.entries("host_permissions")

        for descriptor in descriptors:
            if descriptor.manifest_patch:
                manifest = Manifest.model_validate(
                    _deep_merge(manifest.to_dict(), descriptor.manifest_patch),
                )
            if descriptor.manifest_mutator is not None:
                manifest = descriptor.manifest_mutator(manifest)

        if original_permissions:
            manifest = manifest.with_permissions(*original_permissions)
        if original_hosts:
            manifest = manifest.with_host_permissions(*original_hosts)
        return manifest

    def _merge_permissions(
        self,
        manifest: Manifest,
        descriptors: list[FeatureDescriptor],
        selection: FeatureSelection,
    ) -> Manifest:
        """Union grants and host access into the manifest. Nothing is removed."""
        permissions: list[str] = []
        hosts: list[str] = []

        for descriptor in descriptors:
            permissions.extend(sorted(descriptor.grants))
            if descriptor.host_permission == HostAccess.ACTIVE_TAB:
                permissions.append(ACTIVE_TAB)
            elif descriptor.host_permission == HostAccess.ALL_URLS:
                hosts.append(ALL_URLS)

        if selection.host_access == HostAccess.ACTIVE_TAB:
            permissions.append(ACTIVE_TAB)
        elif selection.host_access == HostAccess.ALL_URLS:
            hosts.append(ALL_URLS)
        elif selection.host_access == HostAccess.CUSTOM:
            hosts.extend(selection.host_patterns)

        return manifest.with_permissions(*permissions).with_host_permissions(*hosts)

    def _ensure_background(self, manifest: Manifest, files: dict[str, str]) -> Manifest:
        """Declare a service worker and make sure its file exists."""
        worker = _service_worker(manifest)
        if worker is None:
            background = _section(manifest, "background")
            background["service_worker"] = worker = BACKGROUND_FILE
            manifest = manifest.updated(background=background)

        if worker not in files:
            logger.debug("Creating service worker %s", worker)
            files[worker] = BACKGROUND_HEADER
        return manifest

    def _apply_framework(
        self,
        manifest: Manifest,
        files: dict[str, str],
        framework: Framework,
        title: str,
    ) -> None:
        """Replace the entry UI files with framework boilerplate."""
        pages = []
        for key, entry in (("action", "default_popup"), ("side_panel", "default_path")):
            page = (manifest.section(key) or {}).get(entry)
            if _is_page(page) and page not in pages:
                pages.append(page)
        if not pages:
            pages.append(POPUP_PAGE)

        for page in pages:
            replaced = framework_files(framework, page, _script_for(page), title)
            for path in replaced:
                if path in files and files[path] != replaced[path]:
                    logger.warning("Replacing %s with %s boilerplate", path, framework.value)
            files.update(replaced)

    def _resolve_target(self, target: str, manifest: Manifest) -> str:
        """Fragments aimed at background.js go to the declared service worker."""
        if target == BACKGROUND_FILE:
            return _service_worker(manifest) or target
        return target

    def _inject(
        self,
        descriptor: FeatureDescriptor,
        manifest: Manifest,
        files: dict[str, str],
    ) -> None:
        """Append a feature's code fragment unless it is already present."""
        if descriptor.code_fragment is None or descriptor.target_file is None:
            return

        target = self._resolve_target(descriptor.target_file, manifest)
        current = files.get(target, "")
        begin, end = sentinels(descriptor.id, target)

        if begin in current or (descriptor.marker and descriptor.marker in current):
            logger.debug("Feature '%s' already present in %s", descriptor.id, target)
            return

        fragment = descriptor.code_fragment.rstrip("\n")
        block = f"{begin}\n{fragment}\n{end}\n"
        if current.strip():
            files[target] = current.rstrip("\n") + "\n\n" + block
        else:
            files[target] = block
        logger.debug("Injected feature '%s' into %s", descriptor.id, target)

    def _apply_identity(
        self,
        manifest: Manifest,
        name: str,
        selection: FeatureSelection,
    ) -> tuple[Manifest, str]:
        identity = selection.identity
        changes: dict[str, str] = {}
        if _is_text(identity.name):
            changes["name"] = identity.name
            name = identity.name
        if _is_text(identity.description):
            changes["description"] = identity.description
        if changes and any(getattr(manifest, k) != v for k, v in changes.items()):
            manifest = manifest.updated(**changes)
        return manifest, name


def compose(
    project: Project,
    selection: FeatureSelection,
    catalog: FeatureCatalog | None = None,
) -> CompositionResult:
    """Compose ``selection`` into ``project`` with a throwaway engine."""
    return CompositionEngine(catalog).compose(project, selection)
