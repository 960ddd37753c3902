# pyright: reportAny=false, reportUnknownArgumentType=false
from pathlib import Path

import pytest
from pyfakefs.fake_filesystem import FakeFilesystem

from context1000.config._loader import deep_merge, env_overrides, read_toml_file
from context1000.config._models import Context1000Config
from context1000.exceptions import ConfigLoadError


class TestReadTomlFile:
    def test_parses_valid_toml(self, fs: FakeFilesystem) -> None:
        path = Path("/project/context1000.toml")
        fs.create_file(
            path,
            contents='[sources]\nroot = "docs"\n\n[watch]\ndebounce_ms = 200\n',
        )

        result = read_toml_file(path)

        assert result == {"sources": {"root": "docs"}, "watch": {"debounce_ms": 200}}

    def test_parses_empty_file(self, fs: FakeFilesystem) -> None:
        path = Path("/project/empty.toml")
        fs.create_file(path, contents="")

        assert read_toml_file(path) == {}

    def test_raises_file_not_found_for_missing_file(self, fs: FakeFilesystem) -> None:
        with pytest.raises(FileNotFoundError):
            _ = read_toml_file(Path("/project/missing.toml"))

    def test_config_load_error_includes_line_and_column(
        self, fs: FakeFilesystem
    ) -> None:
        path = Path("/project/broken.toml")
        fs.create_file(path, contents='[watch]\nrecursive = true\n\n[query\n')

        with pytest.raises(ConfigLoadError) as exc_info:
            _ = read_toml_file(path)

        error = exc_info.value
        assert error.path == path
        assert error.line == 4
        assert error.column is not None
        assert error.__cause__ is not None


class TestDeepMerge:
    def test_merges_sections_key_by_key(self) -> None:
        base = {"watch": {"debounce_ms": 1600, "recursive": True}}
        override = {"watch": {"debounce_ms": 200}}

        assert deep_merge(base, override) == {
            "watch": {"debounce_ms": 200, "recursive": True}
        }

    def test_replaces_arrays_entirely(self) -> None:
        base = {"sources": {"patterns": ["**/*.md", "**/*.mdx"]}}
        override = {"sources": {"patterns": ["decisions/*.md"]}}

        assert deep_merge(base, override) == {"sources": {"patterns": ["decisions/*.md"]}}

    def test_scalar_replaces_section(self) -> None:
        assert deep_merge({"watch": {"recursive": True}}, {"watch": 2}) == {"watch": 2}

    def test_does_not_mutate_inputs(self) -> None:
        base = {"sources": {"ignore": ["drafts/"]}}
        override = {"sources": {"root": "docs"}}

        _ = deep_merge(base, override)

        assert base == {"sources": {"ignore": ["drafts/"]}}
        assert override == {"sources": {"root": "docs"}}


class TestEnvOverrides:
    def test_maps_section_and_field(self) -> None:
        result = env_overrides({"CONTEXT1000_WATCH__DEBOUNCE_MS": "250"})

        assert result == {"watch": {"debounce_ms": "250"}}

    def test_groups_fields_by_section(self) -> None:
        result = env_overrides(
            {
                "CONTEXT1000_LOGGING__LEVEL": "debug",
                "CONTEXT1000_LOGGING__FORMAT": "text",
                "CONTEXT1000_SOURCES__ROOT": "docs",
            }
        )

        assert result == {
            "logging": {"level": "debug", "format": "text"},
            "sources": {"root": "docs"},
        }

    def test_tuple_fields_split_on_commas(self) -> None:
        result = env_overrides({"CONTEXT1000_SOURCES__PATTERNS": "*.md, docs/*.mdx,"})

        assert result == {"sources": {"patterns": ["*.md", "docs/*.mdx"]}}

    @pytest.mark.parametrize("raw", ["", "none", "NULL"])
    def test_optional_fields_accept_none(self, raw: str) -> None:
        result = env_overrides({"CONTEXT1000_QUERY__MAX_LIMIT": raw})

        assert result == {"query": {"max_limit": None}}

    @pytest.mark.parametrize(
        "name",
        [
            "CONTEXT1000_DEBUG",
            "CONTEXT1000_LOG_LEVEL",
            "CONTEXT1000_SERVER__PORT",
            "CONTEXT1000_WATCH__UNKNOWN",
            "CONTEXT1000_",
            "OTHER_WATCH__DEBOUNCE_MS",
        ],
    )
    def test_skips_unknown_names(self, name: str) -> None:
        assert env_overrides({name: "1"}) == {}

    def test_custom_prefix(self) -> None:
        result = env_overrides(
            {"APP_WATCH__RECURSIVE": "false", "CONTEXT1000_WATCH__STEP_MS": "5"},
            prefix="APP_",
        )

        assert result == {"watch": {"recursive": "false"}}

    def test_reads_process_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CONTEXT1000_WATCH__STEP_MS", "25")

        assert env_overrides()["watch"]["step_ms"] == "25"

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("true", True), ("FALSE", False), ("yes", True), ("0", False)],
    )
    def test_strings_coerce_against_model(self, raw: str, expected: bool) -> None:
        data = env_overrides(
            {"CONTEXT1000_WATCH__RECURSIVE": raw, "CONTEXT1000_WATCH__STEP_MS": "7"}
        )

        config = Context1000Config.model_validate(data)

        assert config.watch.recursive is expected
        assert config.watch.step_ms == 7
