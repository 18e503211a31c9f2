"""Abstract source and sink interfaces for the copy engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, AsyncGenerator, Dict

from sqlalchemy.sql import Select


class RowSource(ABC):
    """Relational side: executes a read-only query and streams its rows."""

    name: str

    @abstractmethod
    def stream(self, statement: Select) -> AsyncGenerator[Dict[str, Any], None]:
        """Yield rows one at a time; the caller pauses by not pulling."""


class DocumentSink(ABC):
    """Document side: create-or-replace writes keyed by document id."""

    name: str

    @abstractmethod
    async def upsert(self, collection: str, document_id: Any, document: Dict[str, Any]) -> None:
        """Store ``document`` under ``document_id``, replacing any previous version."""
