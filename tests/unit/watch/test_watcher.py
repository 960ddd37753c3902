"""Tests for the change watcher."""

import json
import threading
from collections.abc import Iterator
from pathlib import Path

import pytest
from pytest_mock import MockerFixture
from watchfiles import Change

from context1000.catalog._catalog import Catalog
from context1000.config._models import Context1000Config, WatchConfig
from context1000.watch._watcher import (
    ApplyResult,
    ChangeWatcher,
    WatcherState,
    coalesce_changes,
)

Batch = set[tuple[Change, str]]

GUIDE_WITHOUT_TITLE = """\
---
kind: guide
id: setup
---
"""


@pytest.fixture
def catalog(docs_root: Path) -> Catalog:
    catalog = Catalog()
    _ = catalog.load_directory(docs_root)
    return catalog


@pytest.fixture
def watcher(catalog: Catalog, docs_root: Path) -> ChangeWatcher:
    return ChangeWatcher(catalog, docs_root)


class TestCoalesceChanges:
    def test_last_event_wins(self) -> None:
        result = coalesce_changes(
            [(Change.added, "a.md"), (Change.modified, "a.md"), (Change.deleted, "a.md")]
        )

        assert result == {"a.md": Change.deleted}

    def test_delete_then_add_is_modify(self) -> None:
        result = coalesce_changes([(Change.deleted, "a.md"), (Change.added, "a.md")])

        assert result == {"a.md": Change.modified}

    def test_paths_are_independent(self) -> None:
        result = coalesce_changes([(Change.added, "a.md"), (Change.deleted, "b.md")])

        assert result == {"a.md": Change.added, "b.md": Change.deleted}


class TestApplyResult:
    def test_is_empty(self) -> None:
        assert ApplyResult().is_empty
        assert not ApplyResult(failed=("x.md",)).is_empty


class TestShouldWatch:
    def test_documents_only(self, watcher: ChangeWatcher, docs_root: Path) -> None:
        assert watcher.should_watch(Change.added, str(docs_root / "rules" / "x.md"))
        assert not watcher.should_watch(Change.added, str(docs_root / "notes.txt"))

    def test_ignored_paths(self, watcher: ChangeWatcher, docs_root: Path) -> None:
        assert not watcher.should_watch(
            Change.modified, str(docs_root / ".git" / "notes.md")
        )
        assert not watcher.should_watch(
            Change.modified, str(docs_root / "node_modules" / "a" / "b.md")
        )

    def test_outside_root(
        self, watcher: ChangeWatcher, tmp_path_factory: pytest.TempPathFactory
    ) -> None:
        elsewhere = tmp_path_factory.mktemp("elsewhere").resolve()

        assert not watcher.should_watch(Change.added, str(elsewhere / "a.md"))


class TestApplyChanges:
    def test_modified_document_is_replaced(
        self, watcher: ChangeWatcher, catalog: Catalog, docs_root: Path
    ) -> None:
        path = docs_root / "guides" / "setup.md"
        _ = path.write_text(path.read_text().replace("Local setup", "Local install"))

        result = watcher.apply_changes({str(path): Change.modified})

        assert result == ApplyResult(applied=("setup",))
        assert catalog.get("setup").title == "Local install"
        assert catalog.query({"text": "install"})[0].id == "setup"

    def test_deleted_document_is_removed(
        self, watcher: ChangeWatcher, catalog: Catalog, docs_root: Path
    ) -> None:
        path = docs_root / "decisions" / "d1.md"
        path.unlink()

        result = watcher.apply_changes({str(path): Change.deleted})

        assert result.removed == ("d1",)
        report = catalog.get_validation_report()
        assert {d.id for d in report.dangling_relations} == {"d2", "no-orm"}

    def test_existing_file_wins_over_reported_deletion(
        self, watcher: ChangeWatcher, catalog: Catalog, docs_root: Path
    ) -> None:
        path = docs_root / "guides" / "setup.md"

        result = watcher.apply_changes({str(path): Change.deleted})

        assert result.applied == ("setup",)
        assert "setup" in catalog.index

    def test_invalid_document_is_quarantined(
        self, watcher: ChangeWatcher, catalog: Catalog, docs_root: Path
    ) -> None:
        path = docs_root / "guides" / "setup.md"
        _ = path.write_text(GUIDE_WITHOUT_TITLE)

        result = watcher.apply_changes({str(path): Change.modified})

        assert result.failed == (str(path),)
        assert "setup" not in catalog.index
        assert [e.id for e in catalog.get_validation_report().quarantined] == ["setup"]

    def test_batch_is_all_or_nothing_for_readers(
        self,
        watcher: ChangeWatcher,
        catalog: Catalog,
        docs_root: Path,
        documents: dict[str, str],
    ) -> None:
        new_path = docs_root / "decisions" / "d3.md"
        _ = new_path.write_text(documents["d2"].replace("id: d2", "id: d3"))
        removed_path = docs_root / "decisions" / "d1.md"
        removed_path.unlink()

        result = watcher.apply_changes(
            {str(new_path): Change.added, str(removed_path): Change.deleted}
        )

        assert result.applied == ("d3",)
        assert result.removed == ("d1",)
        assert [s.id for s in catalog.query({"kind": "decision"})] == []
        assert {d.id for d in catalog.get_validation_report().dangling_relations} == {
            "d2",
            "d3",
            "no-orm",
        }

    def test_readers_see_previous_state_during_batch(
        self,
        watcher: ChangeWatcher,
        catalog: Catalog,
        docs_root: Path,
        mocker: MockerFixture,
    ) -> None:
        removed_path = docs_root / "decisions" / "d1.md"
        removed_path.unlink()
        before = [s.id for s in catalog.query({"orderBy": "id"})]
        remove_source = catalog.remove_source
        seen: list[list[str]] = []

        def record(path: Path | str) -> object:
            result = remove_source(path)
            seen.append([s.id for s in catalog.query({"orderBy": "id"})])
            return result

        _ = mocker.patch.object(catalog, "remove_source", side_effect=record)

        _ = watcher.apply_changes({str(removed_path): Change.deleted})

        assert seen == [before]
        assert [s.id for s in catalog.query({"orderBy": "id"})] == ["core", "setup"]

    def test_waiting_duplicate_admitted_after_owner_deleted(
        self,
        watcher: ChangeWatcher,
        catalog: Catalog,
        docs_root: Path,
        documents: dict[str, str],
    ) -> None:
        copy = docs_root / "guides" / "setup-copy.md"
        _ = copy.write_text(documents["setup"].replace("Local setup", "Local setup v2"))
        first = watcher.apply_changes({str(copy): Change.added})
        assert first.failed == (str(copy),)

        original = docs_root / "guides" / "setup.md"
        original.unlink()
        second = watcher.apply_changes({str(original): Change.deleted})

        assert second.removed == ("setup",)
        assert catalog.get("setup").title == "Local setup v2"
        assert catalog.get_validation_report().is_clean

    def test_irrelevant_paths_are_skipped(
        self, watcher: ChangeWatcher, docs_root: Path
    ) -> None:
        result = watcher.apply_changes({str(docs_root / "notes.txt"): Change.added})

        assert result.is_empty


class TestRun:
    def test_applies_batches_and_returns_to_idle(
        self,
        mocker: MockerFixture,
        catalog: Catalog,
        docs_root: Path,
    ) -> None:
        path = docs_root / "guides" / "setup.md"
        _ = path.write_text(path.read_text().replace("Local setup", "Local install"))
        states: list[WatcherState] = []

        watcher = ChangeWatcher(
            catalog, docs_root, config=WatchConfig(debounce_ms=10, step_ms=5)
        )

        def fake_watch(*_args: object, **kwargs: object) -> Iterator[Batch]:
            states.append(watcher.state)
            assert kwargs["debounce"] == 10
            assert kwargs["step"] == 5
            assert kwargs["watch_filter"] == watcher.should_watch
            yield {(Change.modified, str(path))}
            states.append(watcher.state)

        mock_watch = mocker.patch(
            "context1000.watch._watcher.watch", side_effect=fake_watch
        )

        watcher.run(initial_load=False)

        mock_watch.assert_called_once()
        assert states == [WatcherState.SCANNING, WatcherState.SCANNING]
        assert watcher.state == WatcherState.IDLE
        assert catalog.get("setup").title == "Local install"

    def test_initial_load(self, mocker: MockerFixture, docs_root: Path) -> None:
        _ = mocker.patch("context1000.watch._watcher.watch", return_value=iter(()))
        catalog = Catalog()

        ChangeWatcher(catalog, docs_root).run()

        assert len(catalog.query()) == 5

    def test_stop_event_ends_loop_after_batch(
        self, mocker: MockerFixture, catalog: Catalog, docs_root: Path
    ) -> None:
        watcher = ChangeWatcher(catalog, docs_root)
        applied: list[int] = []

        def fake_watch(*_args: object, **kwargs: object) -> Iterator[Batch]:
            stop_event = kwargs["stop_event"]
            assert isinstance(stop_event, threading.Event)
            while True:
                applied.append(1)
                if len(applied) == 2:
                    stop_event.set()
                yield set()

        _ = mocker.patch("context1000.watch._watcher.watch", side_effect=fake_watch)

        watcher.run(initial_load=False)

        assert len(applied) == 2
        assert watcher.state == WatcherState.IDLE


class TestStartStop:
    def test_stop_without_start(self, watcher: ChangeWatcher) -> None:
        assert watcher.stop() is True

    def test_background_thread(
        self, mocker: MockerFixture, catalog: Catalog, docs_root: Path
    ) -> None:
        def fake_watch(*_args: object, **kwargs: object) -> Iterator[Batch]:
            stop_event = kwargs["stop_event"]
            assert isinstance(stop_event, threading.Event)
            _ = stop_event.wait(5)
            yield from ()

        _ = mocker.patch("context1000.watch._watcher.watch", side_effect=fake_watch)
        watcher = ChangeWatcher(catalog, docs_root)

        watcher.start(initial_load=False)

        assert watcher.stop(timeout=5) is True
        assert watcher.state == WatcherState.IDLE


class TestFromConfig:
    def test_uses_sources_and_watch_sections(
        self, catalog: Catalog, docs_root: Path
    ) -> None:
        config = Context1000Config.model_validate(
            {
                "sources": {"ignore": ["guides/"]},
                "watch": {"debounce_ms": 100},
            }
        )

        watcher = ChangeWatcher.from_config(catalog, config, base_dir=docs_root)

        assert watcher.root == docs_root
        assert not watcher.should_watch(
            Change.modified, str(docs_root / "guides" / "setup.md")
        )
        assert watcher.should_watch(
            Change.modified, str(docs_root / "rules" / "no-orm.md")
        )

    def test_logs_to_configured_file(
        self,
        catalog: Catalog,
        docs_root: Path,
        tmp_path_factory: pytest.TempPathFactory,
    ) -> None:
        log_file = tmp_path_factory.mktemp("logs") / "watcher.log"
        config = Context1000Config.model_validate(
            {"logging": {"file": str(log_file), "format": "json"}}
        )
        watcher = ChangeWatcher.from_config(catalog, config, base_dir=docs_root)

        _ = watcher.apply_changes(
            {str(docs_root / "guides" / "setup.md"): Change.modified}
        )

        entries = [
            json.loads(line)
            for line in log_file.read_text(encoding="utf-8").splitlines()
        ]
        applied = [e for e in entries if e["event"] == "watcher_batch_applied"]
        assert applied == [
            {
                "event": "watcher_batch_applied",
                "component": "watcher",
                "applied": 1,
                "removed": 0,
                "failed": 0,
                "quarantined": 0,
                "level": "info",
                "timestamp": applied[0]["timestamp"],
            }
        ]
