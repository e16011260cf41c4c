"""Load and write projects on disk for the command-line interface."""

from __future__ import annotations

import json
from pathlib import Path

from .exceptions import WorkspaceError
from .logging import get_logger
from .models import MANIFEST_FILE, Project

logger = get_logger("workspace")

IGNORED_DIRS = frozenset({".git", "node_modules", "__pycache__"})


def load_project(directory: Path) -> Project:
    """Read every text file below ``directory`` into a Project.

    Binary files (icons and the like) are skipped; they are not part of the
    composition model.

    Args:
        directory: Extension project directory

    Returns:
        Project named after the manifest, or the directory when unnamed

    Raises:
        WorkspaceError: If the directory does not exist or cannot be read
    """
    root = Path(directory)
    if not root.is_dir():
        msg = f"Project directory not found: {root}"
        raise WorkspaceError(msg)

    files: dict[str, str] = {}
    try:
        for path in sorted(root.rglob("*")):
            relative = path.relative_to(root)
            if not path.is_file() or IGNORED_DIRS.intersection(relative.parts):
                continue
            try:
                files[relative.as_posix()] = path.read_text(encoding="utf-8")
            except UnicodeDecodeError:
                logger.debug("Skipping binary file %s", relative)
    except OSError as e:
        msg = f"Failed to read project directory: {e}"
        raise WorkspaceError(msg, details={"directory": str(root)}) from e

    return Project(name=_project_name(files, root), files=files)


def _project_name(files: dict[str, str], root: Path) -> str:
    try:
        data = json.loads(files.get(MANIFEST_FILE, ""))
    except json.JSONDecodeError:
        return root.name
    if isinstance(data, dict) and isinstance(data.get("name"), str) and data["name"]:
        return data["name"]
    return root.name


def write_project(
    project: Project,
    directory: Path,
    previous: Project | None = None,
) -> list[str]:
    """Write project files below ``directory``.

    Args:
        project: Project to write
        directory: Target directory, created if needed
        previous: Project as it was loaded; unchanged files are not rewritten

    Returns:
        Relative paths that were written

    Raises:
        WorkspaceError: If a file cannot be written
    """
    root = Path(directory)
    written: list[str] = []
    try:
        for relative, content in sorted(project.files.items()):
            if previous is not None and previous.files.get(relative) == content:
                continue
            target = root / relative
            if not target.resolve().is_relative_to(root.resolve()):
                msg = f"Refusing to write outside the project directory: {relative}"
                raise WorkspaceError(msg, details={"path": relative})
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
            written.append(relative)
    except OSError as e:
        msg = f"Failed to write project files: {e}"
        raise WorkspaceError(msg, details={"directory": str(root)}) from e

    logger.debug("Wrote %d file(s) to %s", len(written), root)
    return written
