"""Integration tests running the change watcher against a real directory."""

import time
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from context1000.catalog._catalog import Catalog
from context1000.config._models import WatchConfig
from context1000.watch._watcher import ChangeWatcher, WatcherState

DECISION_D3 = """\
---
kind: decision
id: d3
title: Partition streams by tenant
status: proposed
relations: [d2]
---
"""

TIMEOUT = 10.0


def wait_until(condition: Callable[[], bool], timeout: float = TIMEOUT) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.05)
    return condition()


def ids(catalog: Catalog) -> set[str]:
    return {s.id for s in catalog.query({})}


@pytest.fixture
def catalog() -> Catalog:
    return Catalog()


@pytest.fixture
def running_watcher(catalog: Catalog, docs_root: Path) -> Iterator[ChangeWatcher]:
    watcher = ChangeWatcher(
        catalog, docs_root, config=WatchConfig(debounce_ms=50, step_ms=10)
    )
    watcher.start()
    assert wait_until(lambda: "d1" in ids(catalog))
    assert wait_until(lambda: watcher.state == WatcherState.SCANNING)
    # Give the notify backend time to register the watch
    time.sleep(0.5)
    yield watcher
    assert watcher.stop(timeout=TIMEOUT)


class TestWatchDirectory:
    def test_initial_load(
        self, catalog: Catalog, running_watcher: ChangeWatcher
    ) -> None:
        assert ids(catalog) == {"d1", "d2", "no-orm", "setup", "core"}
        assert running_watcher.state == WatcherState.SCANNING

    def test_added_document_is_indexed(
        self,
        catalog: Catalog,
        running_watcher: ChangeWatcher,
        write_document: Callable[[str, str], Path],
    ) -> None:
        _ = write_document("decisions/d3.md", DECISION_D3)

        assert wait_until(lambda: "d3" in ids(catalog))
        assert [s.id for s in catalog.query({"relatesTo": "d2"})] == ["d3"]

    def test_deleted_document_hides_dependents(
        self,
        catalog: Catalog,
        running_watcher: ChangeWatcher,
        docs_root: Path,
    ) -> None:
        (docs_root / "decisions" / "d1.md").unlink()

        assert wait_until(lambda: "d1" not in ids(catalog))
        assert "d2" not in ids(catalog)
        assert "no-orm" not in ids(catalog)
        dangling = {
            (r.id, r.missing_target)
            for r in catalog.get_validation_report().dangling_relations
        }
        assert ("d2", "d1") in dangling

    def test_broken_document_is_quarantined(
        self,
        catalog: Catalog,
        running_watcher: ChangeWatcher,
        docs_root: Path,
    ) -> None:
        _ = (docs_root / "guides" / "setup.md").write_text(
            "---\nkind: guide\n---\n", encoding="utf-8"
        )

        assert wait_until(lambda: "setup" not in ids(catalog))
        quarantined = catalog.get_validation_report().quarantined
        assert any(
            e.source is not None and e.source.path.endswith("setup.md")
            for e in quarantined
        )

    def test_stop_returns_to_idle(self, catalog: Catalog, docs_root: Path) -> None:
        watcher = ChangeWatcher(
            catalog, docs_root, config=WatchConfig(debounce_ms=50, step_ms=10)
        )
        watcher.start()
        assert wait_until(lambda: "d1" in ids(catalog))

        assert watcher.stop(timeout=TIMEOUT)
        assert watcher.state == WatcherState.IDLE
