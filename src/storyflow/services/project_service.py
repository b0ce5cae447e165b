"""Project import/export between JSON files and the live stores."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping

from storyflow.data.errors import DataError, DataValidationError
from storyflow.data.json_loader import dump_json, load_json
from storyflow.data.project_codec import ProjectDef, ProjectPayload, dump_project, parse_project
from storyflow.services.errors import SaveLoadError
from storyflow.services.graph_store import StoryGraph
from storyflow.services.story_runtime import StoryRuntime
from storyflow.services.variable_store import VariableStore

logger = logging.getLogger(__name__)


class ProjectService:
    """Converts the editor's graph and variables to/from a versioned payload."""

    CURRENT_VERSION = "1.0.0"

    def export_project(
        self,
        title: str,
        graph: StoryGraph,
        variables: VariableStore,
        *,
        description: str | None = None,
        created_at: str | None = None,
    ) -> ProjectPayload:
        """Return a JSON-serializable payload for disk persistence."""
        now = _timestamp()
        project = ProjectDef(
            title=title,
            version=self.CURRENT_VERSION,
            nodes=graph.nodes(),
            edges=graph.edges(),
            variables=variables.variables,
            start_node_id=graph.start_node_id,
            description=description,
            created_at=created_at or now,
            updated_at=now,
        )
        return dump_project(project)

    def import_project(
        self,
        payload: Mapping[str, Any],
        *,
        graph: StoryGraph,
        variables: VariableStore,
        runtime: StoryRuntime | None = None,
    ) -> ProjectDef:
        """Replace the live graph and variables with the payload's contents.

        Nothing is touched unless the whole payload validates. An active
        playthrough is stopped before the stores change.
        """
        project = self.parse(payload)
        if runtime is not None:
            runtime.stop()
        graph.start_node_id = project.start_node_id
        graph.load(project.nodes, project.edges)
        variables.replace(project.variables)
        logger.info(
            f"Imported project '{project.title}' "
            f"({len(project.nodes)} nodes, {len(project.edges)} edges)"
        )
        return project

    def parse(self, payload: Mapping[str, Any]) -> ProjectDef:
        """Validate a payload without loading it anywhere."""
        if not isinstance(payload, Mapping):
            raise SaveLoadError("Project data must be a JSON object.")
        try:
            project = parse_project(dict(payload))
        except DataValidationError as exc:
            raise SaveLoadError(f"Invalid project: {exc}") from exc
        if not self.is_version_compatible(project.version):
            raise SaveLoadError(
                f"Project version {project.version} is not compatible with {self.CURRENT_VERSION}."
            )
        return project

    def load_project_file(self, path: Path) -> ProjectPayload:
        try:
            payload = load_json(path)
        except DataError as exc:
            raise SaveLoadError(str(exc)) from exc
        if not isinstance(payload, dict):
            raise SaveLoadError(f"Project file {path} must contain a JSON object.")
        return payload

    def save_project_file(self, path: Path, payload: Mapping[str, Any]) -> None:
        try:
            dump_json(path, dict(payload))
        except DataError as exc:
            raise SaveLoadError(str(exc)) from exc
        logger.info(f"Saved project to {path}")

    def project_metadata(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        """Summarize a payload for listings; tolerant of missing sections."""
        nodes = payload.get("nodes")
        edges = payload.get("edges")
        return {
            "title": payload.get("title", "Untitled"),
            "version": payload.get("version", "unknown"),
            "node_count": len(nodes) if isinstance(nodes, list) else 0,
            "edge_count": len(edges) if isinstance(edges, list) else 0,
            "updated_at": payload.get("updatedAt"),
        }

    def is_version_compatible(self, version: str) -> bool:
        return _major(version) == _major(self.CURRENT_VERSION)


def _major(version: str) -> str:
    return version.split(".", 1)[0]


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()
