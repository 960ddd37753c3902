"""Tests for the in-memory artifact store."""

from dataclasses import replace
from pathlib import Path

import pytest
import structlog
from structlog.testing import capture_logs

from context1000.artifacts._parser import parse_artifact
from context1000.artifacts._store import ArtifactStore
from context1000.artifacts._types import (
    DanglingRelation,
    DecisionArtifact,
    GuideArtifact,
    RuleArtifact,
    SourceLocation,
)
from context1000.exceptions import (
    ArtifactNotFoundError,
    ArtifactParseError,
    ArtifactStoreError,
    DuplicateIdError,
    ParseErrorReason,
)


class TestInsert:
    def test_get_after_insert(self, store: ArtifactStore, decision: DecisionArtifact) -> None:
        store.insert(decision)

        assert store.get("d1") == decision
        assert "d1" in store
        assert len(store) == 1

    def test_identical_insert_is_noop(
        self, store: ArtifactStore, decision: DecisionArtifact
    ) -> None:
        store.insert(decision)
        version = store.version

        store.insert(decision)

        assert store.version == version
        assert len(store) == 1

    def test_conflicting_insert_raises(
        self, store: ArtifactStore, decision: DecisionArtifact
    ) -> None:
        store.insert(decision)

        with pytest.raises(DuplicateIdError) as exc_info:
            store.insert(replace(decision, title="Something else"))

        assert exc_info.value.artifact_id == "d1"
        assert exc_info.value.existing_source == "docs/decisions/d1.md:1"
        assert store.get("d1").title == "Use event sourcing"

    def test_ids_in_insertion_order(
        self,
        store: ArtifactStore,
        guide: GuideArtifact,
        decision: DecisionArtifact,
        rule: RuleArtifact,
    ) -> None:
        store.insert(guide)
        store.insert(decision)
        store.insert(rule)

        assert store.ids() == ["setup", "d1", "no-orm"]

    def test_insert_unsettles_store(
        self, store: ArtifactStore, decision: DecisionArtifact
    ) -> None:
        assert store.is_settled

        store.insert(decision)

        assert not store.is_settled


class TestGet:
    def test_missing_raises(self, store: ArtifactStore) -> None:
        with pytest.raises(ArtifactNotFoundError) as exc_info:
            _ = store.get("nope")

        assert exc_info.value.artifact_id == "nope"
        assert str(exc_info.value) == "Artifact not found: 'nope'"

    def test_missing_is_key_error(self, store: ArtifactStore) -> None:
        with pytest.raises(KeyError):
            _ = store.get("nope")


class TestReplace:
    def test_swaps_content(self, store: ArtifactStore, decision: DecisionArtifact) -> None:
        store.insert(decision)

        store.replace("d1", replace(decision, status="superseded"))

        stored = store.get("d1")
        assert isinstance(stored, DecisionArtifact)
        assert stored.status == "superseded"

    def test_keeps_insertion_position(
        self, store: ArtifactStore, decision: DecisionArtifact, guide: GuideArtifact
    ) -> None:
        store.insert(decision)
        store.insert(guide)

        store.replace("d1", replace(decision, title="Renamed"))

        assert store.ids() == ["d1", "setup"]

    def test_missing_raises(self, store: ArtifactStore, decision: DecisionArtifact) -> None:
        with pytest.raises(ArtifactNotFoundError):
            store.replace("d1", decision)

    def test_id_mismatch_raises(
        self, store: ArtifactStore, decision: DecisionArtifact
    ) -> None:
        store.insert(decision)

        with pytest.raises(ArtifactStoreError):
            store.replace("d9", decision)

    def test_bumps_revision(self, store: ArtifactStore, decision: DecisionArtifact) -> None:
        store.insert(decision)
        before = store.snapshot().revision["d1"]

        store.replace("d1", replace(decision, title="Renamed"))

        assert store.snapshot().revision["d1"] > before


class TestRemove:
    def test_returns_removed(self, store: ArtifactStore, decision: DecisionArtifact) -> None:
        store.insert(decision)

        removed = store.remove("d1")

        assert removed == decision
        assert "d1" not in store

    def test_missing_raises(self, store: ArtifactStore) -> None:
        with pytest.raises(ArtifactNotFoundError):
            _ = store.remove("d1")

    def test_dependents_become_dangling(
        self,
        store: ArtifactStore,
        decision: DecisionArtifact,
        dependent_decision: DecisionArtifact,
    ) -> None:
        store.insert(decision)
        store.insert(dependent_decision)
        _ = store.settle()

        _ = store.remove("d1")

        snapshot = store.snapshot()
        assert not snapshot.is_visible("d2")
        report = store.validation_report()
        assert report.dangling_relations == (DanglingRelation(id="d2", missing_target="d1"),)
        assert [e.id for e in report.quarantined] == ["d2"]


class TestSettle:
    def test_forward_reference_resolves(
        self,
        store: ArtifactStore,
        decision: DecisionArtifact,
        dependent_decision: DecisionArtifact,
    ) -> None:
        store.insert(dependent_decision)
        store.insert(decision)

        report = store.settle()

        assert report.is_clean
        assert store.is_settled

    def test_pending_reference_stays_visible_until_settle(
        self, store: ArtifactStore, dependent_decision: DecisionArtifact
    ) -> None:
        store.insert(dependent_decision)

        assert store.snapshot().is_visible("d2")
        assert store.validation_report().dangling_relations == (
            DanglingRelation(id="d2", missing_target="d1"),
        )

        report = store.settle()

        assert not store.snapshot().is_visible("d2")
        assert report.quarantined[0].id == "d2"
        assert report.quarantined[0].reason == "Unresolved relations: d1"

    def test_inserting_target_releases_dangling(
        self,
        store: ArtifactStore,
        decision: DecisionArtifact,
        dependent_decision: DecisionArtifact,
    ) -> None:
        store.insert(dependent_decision)
        _ = store.settle()

        store.insert(decision)

        assert store.snapshot().is_visible("d2")
        assert store.validation_report().is_clean

    def test_settle_then_remove_then_settle(
        self,
        store: ArtifactStore,
        decision: DecisionArtifact,
        dependent_decision: DecisionArtifact,
    ) -> None:
        store.insert(decision)
        store.insert(dependent_decision)
        assert store.settle().is_clean

        _ = store.remove("d1")
        report = store.settle()

        assert report.dangling_relations == (DanglingRelation(id="d2", missing_target="d1"),)


class TestChanges:
    def test_drain_reports_touched_ids(
        self,
        store: ArtifactStore,
        decision: DecisionArtifact,
        dependent_decision: DecisionArtifact,
    ) -> None:
        store.insert(decision)
        store.insert(dependent_decision)
        assert store.drain_changes() == frozenset({"d1", "d2"})
        assert store.drain_changes() == frozenset()

        _ = store.remove("d1")

        assert store.drain_changes() == frozenset({"d1", "d2"})


class TestSnapshot:
    def test_is_cached_per_version(
        self, store: ArtifactStore, decision: DecisionArtifact
    ) -> None:
        store.insert(decision)

        assert store.snapshot() is store.snapshot()

    def test_is_isolated_from_later_mutations(
        self, store: ArtifactStore, decision: DecisionArtifact, guide: GuideArtifact
    ) -> None:
        store.insert(decision)
        snapshot = store.snapshot()

        store.insert(guide)

        assert "setup" not in snapshot.artifacts
        assert [a.id for a in snapshot.visible()] == ["d1"]


class TestQuarantineDocument:
    def test_records_and_releases(self, store: ArtifactStore) -> None:
        source = SourceLocation(path="guides/broken.md")
        error = ArtifactParseError(
            "Missing required field: 'title'",
            reason=ParseErrorReason.MISSING_FIELD,
            field="title",
        )

        entry = store.quarantine_document(source, error)

        assert entry.id == "broken"
        assert store.validation_report().quarantined == (entry,)
        assert store.release_document("guides/broken.md")
        assert store.validation_report().is_clean
        assert not store.release_document("guides/broken.md")

    def test_explicit_artifact_id(self, store: ArtifactStore) -> None:
        entry = store.quarantine_document(
            SourceLocation(path="a.md"),
            DuplicateIdError("dup", artifact_id="d1"),
            artifact_id="d1",
        )

        assert entry.id == "d1"


class TestPersistence:
    def test_save_and_load(
        self,
        tmp_path: Path,
        store: ArtifactStore,
        decision: DecisionArtifact,
        rule: RuleArtifact,
    ) -> None:
        store.insert(decision)
        store.insert(rule)
        _ = store.settle()
        _ = store.quarantine_document(
            SourceLocation(path="guides/broken.md"),
            ArtifactParseError("bad", reason=ParseErrorReason.MALFORMED_METADATA),
        )
        path = tmp_path / "state" / "store.json"

        store.save(path)
        loaded = ArtifactStore.load(path)

        assert loaded.ids() == ["d1", "no-orm"]
        assert loaded.get("d1") == decision
        assert loaded.get("d1").source == decision.source
        assert loaded.validation_report() == store.validation_report()
        assert loaded.is_settled

    def test_load_rejects_garbage(self, tmp_path: Path) -> None:
        path = tmp_path / "store.json"
        _ = path.write_text("not json")

        with pytest.raises(ArtifactStoreError):
            _ = ArtifactStore.load(path)

    def test_load_rejects_unknown_format(self, tmp_path: Path) -> None:
        path = tmp_path / "store.json"
        _ = path.write_text('{"version": 99}')

        with pytest.raises(ArtifactStoreError):
            _ = ArtifactStore.load(path)


class TestLogging:
    def test_emits_debug_events(self, decision: DecisionArtifact) -> None:
        logger = structlog.get_logger()
        with capture_logs() as logs:
            store = ArtifactStore(logger=logger)
            store.insert(decision)
            _ = store.settle()

        events = [entry["event"] for entry in logs]
        assert "artifact_inserted" in events
        assert "store_settled" in events


def test_parsed_artifacts_round_trip_through_store(
    store: ArtifactStore, documents: dict[str, str]
) -> None:
    for artifact_id, raw in documents.items():
        store.insert(parse_artifact(raw, f"{artifact_id}.md"))

    report = store.settle()

    assert report.is_clean
    assert len(store) == 5
