"""Project library: one JSON file per project under the data directory."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pydantic import ValidationError

from agentforge.exceptions import AgentForgeError, ProjectNotFoundError
from agentforge.types import ProjectState

logger = logging.getLogger(__name__)


class ProjectStore:
    """Reads and writes ProjectState files.

    Writes go to a temporary file that replaces the target, so a crash
    mid-write never leaves a truncated project behind.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    @property
    def projects_dir(self) -> Path:
        return self.root / "projects"

    def path_for(self, project_id: str) -> Path:
        if not project_id or "/" in project_id or "\\" in project_id or project_id.startswith("."):
            raise ProjectNotFoundError(f"Invalid project id: {project_id!r}")
        return self.projects_dir / f"{project_id}.json"

    def save(self, state: ProjectState) -> Path:
        self.projects_dir.mkdir(parents=True, exist_ok=True)
        target = self.path_for(state.id)
        tmp = target.with_suffix(".json.tmp")
        tmp.write_text(state.model_dump_json(indent=2), encoding="utf-8")
        os.replace(tmp, target)
        return target

    def load(self, project_id: str) -> ProjectState:
        path = self.path_for(project_id)
        try:
            return ProjectState.model_validate_json(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            raise ProjectNotFoundError(
                f"No project with id '{project_id}'",
                details={"path": str(path)},
            ) from None
        except ValidationError as e:
            raise AgentForgeError(
                f"Project file {path} is corrupt: {e}",
                details={"path": str(path)},
            ) from e

    def find(self, prefix: str) -> ProjectState:
        """Load by full id or by an unambiguous id prefix."""
        matches = [p for p in self.list_ids() if p.startswith(prefix)]
        if prefix in matches:
            return self.load(prefix)
        if len(matches) == 1:
            return self.load(matches[0])
        if not matches:
            raise ProjectNotFoundError(f"No project matches '{prefix}'")
        raise ProjectNotFoundError(
            f"Project id prefix '{prefix}' is ambiguous ({len(matches)} matches)"
        )

    def list_ids(self) -> list[str]:
        if not self.projects_dir.is_dir():
            return []
        return sorted(p.stem for p in self.projects_dir.glob("*.json"))

    def list(self) -> list[ProjectState]:
        """All readable projects, newest first. Corrupt files are skipped."""
        projects = []
        for project_id in self.list_ids():
            try:
                projects.append(self.load(project_id))
            except AgentForgeError as e:
                logger.warning("Skipping unreadable project %s: %s", project_id, e)
        return sorted(projects, key=lambda p: p.created_at, reverse=True)

    def delete(self, project_id: str) -> None:
        path = self.path_for(project_id)
        try:
            path.unlink()
        except FileNotFoundError:
            raise ProjectNotFoundError(f"No project with id '{project_id}'") from None
