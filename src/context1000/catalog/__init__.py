"""Catalog of architectural artifacts.

The Catalog ties together source discovery, parsing, the artifact store,
the index and the query engine behind one thread-safe facade.

Example:
    >>> from context1000.catalog import Catalog
    >>> catalog = Catalog()
    >>> report = catalog.load_directory("docs")
    >>> catalog.query({"kind": "rule", "tags": ["database"]})
    [ArtifactSummary(id='no-orm', kind=<ArtifactKind.RULE: 'rule'>, ...)]
"""

from context1000.catalog._catalog import Catalog, Published
from context1000.catalog._discovery import (
    DEFAULT_PATTERNS,
    create_document_spec,
    discover_documents,
    is_document,
)

__all__ = [
    "DEFAULT_PATTERNS",
    "Catalog",
    "Published",
    "create_document_spec",
    "discover_documents",
    "is_document",
]
