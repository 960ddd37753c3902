"""Shared test fixtures for context1000 tests."""

from collections.abc import Callable
from pathlib import Path

import pytest

DECISION_D1 = """\
---
kind: decision
id: d1
title: Use event sourcing
status: accepted
tags: [architecture, events]
---
We persist every state change as an event.
"""

DECISION_D2 = """\
---
kind: decision
id: d2
title: Snapshot event streams
status: proposed
relations: [d1]
---
Streams longer than 1000 events get snapshots.
"""

RULE_NO_ORM = """\
---
kind: rule
id: no-orm
title: No ORM in the write path
severity: error
tags: [database]
related:
  decisions: [d1]
---
Write models talk to the event store directly.
"""

GUIDE_SETUP = """\
---
kind: guide
id: setup
title: Local setup
level: beginner
---
Run the bootstrap script.
"""

PROJECT_CORE = """\
---
kind: project
id: core
title: Core platform
owner: platform-team
stack: [python, postgres]
---
"""


@pytest.fixture
def write_document(tmp_path: Path) -> Callable[[str, str], Path]:
    """Return a function writing a document below tmp_path."""

    def _write(relative: str, content: str) -> Path:
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        _ = path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def docs_root(tmp_path: Path, write_document: Callable[[str, str], Path]) -> Path:
    """Create a small documentation tree.

    Structure:
        tmp_path/
            decisions/d1.md
            decisions/d2.md
            rules/no-orm.md
            guides/setup.md
            projects/core.md
    """
    _ = write_document("decisions/d1.md", DECISION_D1)
    _ = write_document("decisions/d2.md", DECISION_D2)
    _ = write_document("rules/no-orm.md", RULE_NO_ORM)
    _ = write_document("guides/setup.md", GUIDE_SETUP)
    _ = write_document("projects/core.md", PROJECT_CORE)
    return tmp_path.resolve()


@pytest.fixture
def documents() -> dict[str, str]:
    """Sample documents keyed by artifact ID."""
    return {
        "d1": DECISION_D1,
        "d2": DECISION_D2,
        "no-orm": RULE_NO_ORM,
        "setup": GUIDE_SETUP,
        "core": PROJECT_CORE,
    }
