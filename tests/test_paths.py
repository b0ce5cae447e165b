from pathlib import Path

from storyflow.data import paths


def test_get_projects_path_base_path(tmp_path: Path) -> None:
    assert paths.get_projects_path(tmp_path) == tmp_path
    assert paths.get_projects_path(str(tmp_path)) == tmp_path


def test_get_projects_path_source_repo_exists() -> None:
    projects_path = paths.get_projects_path()
    assert projects_path.name == "projects"
    assert (projects_path / "crossroads.json").exists()
