"""Fixtures for artifact system unit tests."""

from datetime import date

import pytest

from context1000.artifacts._registry import SchemaRegistry
from context1000.artifacts._store import ArtifactStore
from context1000.artifacts._types import (
    DecisionArtifact,
    GuideArtifact,
    ProjectArtifact,
    RuleArtifact,
    SourceLocation,
)


@pytest.fixture
def registry() -> SchemaRegistry:
    return SchemaRegistry.get_instance()


@pytest.fixture
def store() -> ArtifactStore:
    return ArtifactStore()


@pytest.fixture
def decision() -> DecisionArtifact:
    return DecisionArtifact(
        id="d1",
        title="Use event sourcing",
        status="accepted",
        tags=("architecture", "events"),
        body="We persist every state change as an event.",
        decision_date=date(2025, 1, 15),
        deciders=("alice", "bob"),
        source=SourceLocation(path="docs/decisions/d1.md"),
    )


@pytest.fixture
def dependent_decision() -> DecisionArtifact:
    return DecisionArtifact(
        id="d2",
        title="Snapshot event streams",
        status="proposed",
        relations=("d1",),
    )


@pytest.fixture
def rule() -> RuleArtifact:
    return RuleArtifact(
        id="no-orm",
        title="No ORM in the write path",
        severity="error",
        tags=("database",),
        relations=("d1",),
        body="Write models talk to the event store directly.",
    )


@pytest.fixture
def guide() -> GuideArtifact:
    return GuideArtifact(id="setup", title="Local setup", level="beginner")


@pytest.fixture
def project() -> ProjectArtifact:
    return ProjectArtifact(
        id="core",
        title="Core platform",
        owner="platform-team",
        stack=("python", "postgres"),
    )
