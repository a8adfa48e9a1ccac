"""
Unit Tests — Buildspec Parser
==============================
Schema and semantic validation of buildspec files, plus the shape of the
resulting BuildSpecification.
"""
import dataclasses

import pytest
from pydantic import ValidationError

from buildspec_runner.core.constants import PHASES
from buildspec_runner.core.errors import SpecFormatError
from buildspec_runner.parser.buildspec_parser import (
    parse,
    parse_project,
    resolve_build_spec_path,
)
from buildspec_runner.services.source_provider import FolderSourceProvider
from buildspec_helpers import ALL_PHASES, BASE_CONTENTS, make_buildspec_string


def _all_defined(**overrides):
    opts = {
        "variables": {"var1": "value1", "var2": "value2", "var3": "value3"},
        "phases": {k: list(v) for k, v in ALL_PHASES.items()},
        "artifacts": {"files": ["file1", "file2"], "base-directory": "/some/path", "discard-paths": False},
    }
    opts.update(overrides)
    return make_buildspec_string(**opts)


# ---------------------------------------------------------------------------
# 1. Everything defined
# ---------------------------------------------------------------------------
class TestEverythingDefined:

    def test_has_env(self, write_buildspec):
        spec = parse(write_buildspec(_all_defined()))
        assert dict(spec.env) == {"var1": "value1", "var2": "value2", "var3": "value3"}

    def test_has_all_phases_in_order(self, write_buildspec):
        spec = parse(write_buildspec(_all_defined()))
        for phase in PHASES:
            assert spec.phases[phase] == tuple(ALL_PHASES[phase])

    def test_records_version_and_path(self, write_buildspec):
        path = write_buildspec(_all_defined())
        spec = parse(path)
        assert spec.version == 0.2
        assert spec.path == path

    def test_artifacts_parsed_but_inert(self, write_buildspec):
        spec = parse(write_buildspec(_all_defined()))
        assert spec.artifacts.files == ("file1", "file2")
        assert spec.artifacts.base_directory == "/some/path"
        assert spec.artifacts.discard_paths is False

    def test_parameter_store(self, write_buildspec):
        spec = parse(write_buildspec(_all_defined(parameter_store={"SECRET": "/prod/secret"})))
        assert dict(spec.parameter_store) == {"SECRET": "/prod/secret"}

    def test_parameter_store_without_variables(self, write_buildspec):
        contents = BASE_CONTENTS + "env:\n  parameter-store:\n    TOKEN: /ci/token\n"
        spec = parse(write_buildspec(contents))
        assert dict(spec.env) == {}
        assert dict(spec.parameter_store) == {"TOKEN": "/ci/token"}

    def test_command_count(self, write_buildspec):
        spec = parse(write_buildspec(_all_defined()))
        assert spec.command_count == 12


# ---------------------------------------------------------------------------
# 2. Optional entries
# ---------------------------------------------------------------------------
class TestOptionalEntries:

    def test_missing_env_is_empty(self, write_buildspec):
        spec = parse(write_buildspec(_all_defined(variables=None)))
        assert dict(spec.env) == {}
        assert dict(spec.parameter_store) == {}

    @pytest.mark.parametrize("missing", PHASES)
    def test_missing_phase_is_empty(self, write_buildspec, missing):
        phases = {k: v for k, v in ALL_PHASES.items() if k != missing}
        spec = parse(write_buildspec(_all_defined(phases=phases)))
        assert spec.phases[missing] == ()
        assert set(spec.phases) == set(PHASES)

    def test_missing_artifacts(self, write_buildspec):
        spec = parse(write_buildspec(_all_defined(artifacts=None)))
        assert spec.artifacts is None

    def test_missing_artifacts_optional_keys(self, write_buildspec):
        parse(write_buildspec(_all_defined(artifacts={"files": ["a"]})))

    def test_base_contents_parse(self, write_buildspec):
        spec = parse(write_buildspec(BASE_CONTENTS))
        assert spec.phases["install"] == ("echo hello",)
        assert spec.phases["build"] == ()


# ---------------------------------------------------------------------------
# 3. Invalid formats
# ---------------------------------------------------------------------------
class TestInvalidFormats:

    @pytest.mark.parametrize("extra", [
        "unknown:\n",
        "  build:\n    commands:\n      - test\n    unknown:\n",
        "env:\n  unknown:\n",
        "env:\n  parameter_store:\n    A: /a\n",
        "artifacts:\n  files:\n    - files1\n  unknown:\n",
    ], ids=["top-level", "under-phase", "under-env", "underscore-alias", "under-artifacts"])
    def test_unknown_keys_rejected(self, write_buildspec, extra):
        with pytest.raises(SpecFormatError, match="Encountered errors"):
            parse(write_buildspec(BASE_CONTENTS + extra))

    @pytest.mark.parametrize("version", ["0.1", "'0.2'", "1", "true", "0.3"])
    def test_invalid_version(self, write_buildspec, version):
        contents = BASE_CONTENTS.replace("version: 0.2", f"version: {version}")
        with pytest.raises(SpecFormatError, match="version"):
            parse(write_buildspec(contents))

    def test_missing_version(self, write_buildspec):
        with pytest.raises(SpecFormatError, match="Missing version"):
            parse(write_buildspec(_all_defined(version=None)))

    def test_null_version(self, write_buildspec):
        with pytest.raises(SpecFormatError):
            parse(write_buildspec(BASE_CONTENTS.replace("version: 0.2", "version:")))

    def test_missing_phases(self, write_buildspec):
        with pytest.raises(SpecFormatError, match='"phases"'):
            parse(write_buildspec(_all_defined(phases=None)))

    def test_null_phases(self, write_buildspec):
        with pytest.raises(SpecFormatError):
            parse(write_buildspec("version: 0.2\nphases:\n"))

    def test_empty_phases_mapping(self, write_buildspec):
        with pytest.raises(SpecFormatError):
            parse(write_buildspec("version: 0.2\nphases: {}\n"))

    def test_unknown_phase(self, write_buildspec):
        phases = dict(ALL_PHASES, recombobulate=["wow"])
        with pytest.raises(SpecFormatError):
            parse(write_buildspec(_all_defined(phases=phases)))

    @pytest.mark.parametrize("phase", PHASES)
    def test_phase_without_commands_mapping(self, write_buildspec, phase):
        contents = f"version: 0.2\nphases:\n  {phase}:\n"
        with pytest.raises(SpecFormatError, match=f'"phases => {phase}" requires mapping "commands"'):
            parse(write_buildspec(contents))

    def test_phase_with_empty_mapping(self, write_buildspec):
        with pytest.raises(SpecFormatError, match='requires mapping "commands"'):
            parse(write_buildspec(BASE_CONTENTS + "  build: {}\n"))

    def test_empty_phase_commands(self, write_buildspec):
        with pytest.raises(SpecFormatError):
            parse(write_buildspec(BASE_CONTENTS + "  build:\n    commands:\n"))

    def test_empty_phase_command_list(self, write_buildspec):
        with pytest.raises(SpecFormatError, match="must not be empty"):
            parse(write_buildspec(BASE_CONTENTS + "  build:\n    commands: []\n"))

    def test_non_string_phase_command(self, write_buildspec):
        with pytest.raises(SpecFormatError):
            parse(write_buildspec(BASE_CONTENTS + "  build:\n    commands:\n      mapping: value\n"))

    def test_integer_phase_command(self, write_buildspec):
        with pytest.raises(SpecFormatError):
            parse(write_buildspec(BASE_CONTENTS + "  build:\n    commands:\n      - 42\n"))

    def test_missing_env_variables(self, write_buildspec):
        with pytest.raises(SpecFormatError, match='Mapping "env" requires mapping "variables"'):
            parse(write_buildspec(BASE_CONTENTS + "env:\n"))

    def test_empty_env_variables(self, write_buildspec):
        with pytest.raises(SpecFormatError):
            parse(write_buildspec(BASE_CONTENTS + "env:\n  variables:\n"))

    def test_empty_env_variables_mapping(self, write_buildspec):
        with pytest.raises(SpecFormatError, match="must not be empty"):
            parse(write_buildspec(BASE_CONTENTS + "env:\n  variables: {}\n"))

    def test_empty_parameter_store(self, write_buildspec):
        with pytest.raises(SpecFormatError):
            parse(write_buildspec(BASE_CONTENTS + "env:\n  parameter-store:\n"))

    def test_non_string_env_variable(self, write_buildspec):
        contents = BASE_CONTENTS + "env:\n  variables:\n    variable:\n      mapping: true\n"
        with pytest.raises(SpecFormatError):
            parse(write_buildspec(contents))

    def test_numeric_env_variable_rejected(self, write_buildspec):
        with pytest.raises(SpecFormatError):
            parse(write_buildspec(BASE_CONTENTS + "env:\n  variables:\n    PORT: 8080\n"))

    def test_missing_artifacts_files(self, write_buildspec):
        with pytest.raises(SpecFormatError, match='Mapping "artifacts" requires mapping "files"'):
            parse(write_buildspec(BASE_CONTENTS + "artifacts:\n"))

    def test_artifacts_without_files(self, write_buildspec):
        with pytest.raises(SpecFormatError, match='requires mapping "files"'):
            parse(write_buildspec(BASE_CONTENTS + "artifacts:\n  base-directory: out\n"))

    def test_empty_artifacts_files(self, write_buildspec):
        with pytest.raises(SpecFormatError):
            parse(write_buildspec(BASE_CONTENTS + "artifacts:\n  files:\n"))

    def test_non_array_artifacts_files(self, write_buildspec):
        with pytest.raises(SpecFormatError):
            parse(write_buildspec(BASE_CONTENTS + "artifacts:\n  files:\n    mapping: true\n"))

    def test_non_boolean_discard_paths(self, write_buildspec):
        contents = BASE_CONTENTS + "artifacts:\n  files:\n    - files1\n  discard-paths: 7\n"
        with pytest.raises(SpecFormatError):
            parse(write_buildspec(contents))

    def test_non_string_base_directory(self, write_buildspec):
        contents = BASE_CONTENTS + "artifacts:\n  files:\n    - files1\n  base-directory:\n    mapping: true\n"
        with pytest.raises(SpecFormatError):
            parse(write_buildspec(contents))

    def test_empty_document(self, write_buildspec):
        with pytest.raises(SpecFormatError, match="empty"):
            parse(write_buildspec(""))

    def test_non_mapping_document(self, write_buildspec):
        with pytest.raises(SpecFormatError):
            parse(write_buildspec("- just\n- a list\n"))

    def test_invalid_yaml(self, write_buildspec):
        with pytest.raises(SpecFormatError, match="Invalid YAML"):
            parse(write_buildspec("version: [0.2\nphases: {\n"))

    def test_unreadable_file(self, tmp_path):
        missing = str(tmp_path / "nope.yml")
        with pytest.raises(SpecFormatError) as exc_info:
            parse(missing)
        assert exc_info.value.path == missing
        assert missing in str(exc_info.value)

    def test_error_carries_path_and_reason(self, write_buildspec):
        path = write_buildspec(BASE_CONTENTS + "env:\n")
        with pytest.raises(SpecFormatError) as exc_info:
            parse(path)
        assert exc_info.value.path == path
        assert exc_info.value.reason == 'Mapping "env" requires mapping "variables"'


# ---------------------------------------------------------------------------
# 4. Immutability
# ---------------------------------------------------------------------------
class TestImmutability:

    def test_spec_is_frozen(self, write_buildspec):
        spec = parse(write_buildspec(_all_defined()))
        with pytest.raises(dataclasses.FrozenInstanceError):
            spec.version = 0.3

    def test_mappings_are_read_only(self, write_buildspec):
        spec = parse(write_buildspec(_all_defined()))
        with pytest.raises(TypeError):
            spec.env["var1"] = "changed"
        with pytest.raises(TypeError):
            spec.phases["install"] = ("rm -rf /",)

    def test_commands_are_tuples(self, write_buildspec):
        spec = parse(write_buildspec(_all_defined()))
        assert all(isinstance(cmds, tuple) for cmds in spec.phases.values())

    def test_artifact_files_cannot_be_changed(self, write_buildspec):
        spec = parse(write_buildspec(_all_defined()))
        assert isinstance(spec.artifacts.files, tuple)
        with pytest.raises(AttributeError):
            spec.artifacts.files.append("extra")
        with pytest.raises(ValidationError):
            spec.artifacts.files = ("replaced",)


# ---------------------------------------------------------------------------
# 5. Buildspec location
# ---------------------------------------------------------------------------
class TestBuildSpecPath:

    def test_default_name(self):
        assert resolve_build_spec_path("/proj") == "/proj/buildspec.yml"

    @pytest.mark.parametrize("relative", ["my_spec_file.yml", "./foo/bar/spec.yml", "../../weird/but/ok.yml"])
    def test_relative_is_joined(self, relative):
        assert resolve_build_spec_path("/proj", relative) == f"/proj/{relative}"

    def test_absolute_kept(self):
        assert resolve_build_spec_path("/proj", "/abs/spec.yml") == "/abs/spec.yml"

    def test_parse_project_custom_path(self, tmp_path):
        (tmp_path / "another_path").mkdir()
        (tmp_path / "another_path" / "file.yml").write_text(
            make_buildspec_string(phases={"build": ["echo we can go deeper"]})
        )
        spec = parse_project(FolderSourceProvider(str(tmp_path)), "another_path/file.yml")
        assert spec.phases["build"] == ("echo we can go deeper",)
