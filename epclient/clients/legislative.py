"""Legislative procedures and adopted texts."""

from typing import Any, Dict, Optional

from ..constants import DEFAULT_PAGE_LIMIT, JSON_LD_MEDIA_TYPE
from ..domain.models import PaginatedResponse
from .base import BaseEPClient
from .jsonld import items_of


class LegislativeClient(BaseEPClient):
    async def get_procedures(
        self, year: Optional[int] = None, limit: int = DEFAULT_PAGE_LIMIT, offset: int = 0
    ) -> PaginatedResponse:
        return await self._get_page("procedures", limit, offset, extra={"year": year})

    async def get_procedure_by_id(self, process_id: str) -> Dict[str, Any]:
        """Fetch one procedure, e.g. ``2024-0006``.

        The API sometimes wraps a single procedure in a ``data`` array; the
        first element is returned in that case.
        """
        checked = self._require_path_segment(process_id, "Procedure process-id")
        response = await self._get(
            f"procedures/{checked}", {"format": JSON_LD_MEDIA_TYPE}
        )
        items = items_of(response)
        return items[0] if items else response

    async def get_procedure_events(
        self, process_id: str, limit: int = DEFAULT_PAGE_LIMIT, offset: int = 0
    ) -> PaginatedResponse:
        checked = self._require_path_segment(process_id, "Procedure process-id")
        return await self._get_page(f"procedures/{checked}/events", limit, offset)

    async def get_adopted_texts(
        self, year: Optional[int] = None, limit: int = DEFAULT_PAGE_LIMIT, offset: int = 0
    ) -> PaginatedResponse:
        return await self._get_page("adopted-texts", limit, offset, extra={"year": year})

    async def get_adopted_text_by_id(self, doc_id: str) -> Dict[str, Any]:
        checked = self._require_path_segment(doc_id, "Document ID")
        return await self._get(f"adopted-texts/{checked}", {"format": JSON_LD_MEDIA_TYPE})

    async def track_procedure(
        self, process_id: str, events_limit: int = DEFAULT_PAGE_LIMIT
    ) -> Dict[str, Any]:
        """A procedure together with its first page of events."""
        procedure = await self.get_procedure_by_id(process_id)
        events = await self.get_procedure_events(process_id, limit=events_limit)
        return {"procedure": procedure, "events": events.data}
