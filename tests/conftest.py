"""
Shared fixtures: buildspec files and project folders on disk.
"""
import pytest

from buildspec_helpers import echo_phases, make_buildspec_string


@pytest.fixture
def write_buildspec(tmp_path):
    """Write raw buildspec text and return its path."""
    def _write(contents: str, name: str = "buildspec.yml") -> str:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(contents)
        return str(path)
    return _write


@pytest.fixture
def project(tmp_path):
    """A project folder whose buildspec echoes one value per phase."""
    root = tmp_path / "project"
    root.mkdir()
    (root / "buildspec.yml").write_text(make_buildspec_string(
        variables={"VAR1": "value1"},
        phases=echo_phases(),
    ))
    return root
