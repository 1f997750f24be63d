"""Document intake — categorized input references, counted but never read."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .models import CategorizedDocument, DocumentCategory

logger = logging.getLogger(__name__)


class DocumentIntake:
    """Finalized list of categorized documents handed to a run."""

    def __init__(self, documents: Iterable[CategorizedDocument | dict] = ()) -> None:
        self._documents: list[CategorizedDocument] = []
        for doc in documents:
            self.add(doc)

    def add(self, document: CategorizedDocument | dict) -> CategorizedDocument:
        doc = document if isinstance(document, CategorizedDocument) else CategorizedDocument.model_validate(document)
        self._documents.append(doc)
        logger.debug("Document added: %s (%s)", doc.name, doc.category.value)
        return doc

    def remove(self, name: str) -> bool:
        """Remove the first document called *name*. Returns False if absent."""
        for i, doc in enumerate(self._documents):
            if doc.name == name:
                del self._documents[i]
                return True
        return False

    @property
    def documents(self) -> list[CategorizedDocument]:
        return list(self._documents)

    def by_category(self, category: DocumentCategory) -> list[CategorizedDocument]:
        return [d for d in self._documents if d.category == category]

    def counts_by_category(self) -> dict[str, int]:
        """Document count per category; every category is present, even at 0."""
        return {c.value: len(self.by_category(c)) for c in DocumentCategory}

    def __len__(self) -> int:
        return len(self._documents)
