"""Plenary sittings, meetings and parliamentary events."""

from typing import Any, Dict, Optional

from ..constants import DEFAULT_PAGE_LIMIT, JSON_LD_MEDIA_TYPE
from ..domain.models import PaginatedResponse
from .base import BaseEPClient
from .jsonld import extract_field, items_of

LOCATION_FIELDS = ("hasLocality", "had_locality", "location")


class PlenaryClient(BaseEPClient):
    async def get_plenary_sessions(
        self,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        location: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> PaginatedResponse:
        """
        List plenary sittings.

        ``location`` is matched case-insensitively against the sitting's
        locality after the page is fetched; the API has no such filter.
        """
        params = {
            "date_from": date_from,
            "date_to": date_to,
            "location": location,
            "limit": limit,
            "offset": offset,
        }
        api_params = {
            "limit": limit,
            "offset": offset,
            "date-from": date_from,
            "date-to": date_to,
        }

        async def operation() -> PaginatedResponse:
            items = items_of(await self._get("meetings", api_params))
            if location:
                needle = location.lower()
                items = [
                    item
                    for item in items
                    if needle in extract_field(item, LOCATION_FIELDS).lower()
                ]
            return self._page(items, limit or DEFAULT_PAGE_LIMIT, offset or 0)

        return await self._audited(
            "get_plenary_sessions", params, operation, lambda page: len(page.data)
        )

    async def get_meeting_by_id(self, event_id: str) -> Dict[str, Any]:
        checked = self._require_path_segment(event_id, "Meeting event ID")
        return await self._get(f"meetings/{checked}", {"format": JSON_LD_MEDIA_TYPE})

    async def get_meeting_activities(
        self, sitting_id: str, limit: int = DEFAULT_PAGE_LIMIT, offset: int = 0
    ) -> PaginatedResponse:
        checked = self._require_path_segment(sitting_id, "Meeting sitting-id")
        return await self._get_page(f"meetings/{checked}/activities", limit, offset)

    async def get_meeting_decisions(
        self, sitting_id: str, limit: int = DEFAULT_PAGE_LIMIT, offset: int = 0
    ) -> PaginatedResponse:
        checked = self._require_path_segment(sitting_id, "Meeting sitting-id")
        return await self._get_page(f"meetings/{checked}/decisions", limit, offset)

    async def get_events(
        self,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        limit: int = DEFAULT_PAGE_LIMIT,
        offset: int = 0,
    ) -> PaginatedResponse:
        return await self._get_page(
            "events",
            limit,
            offset,
            extra={"date-from": date_from, "date-to": date_to},
        )

    async def get_event_by_id(self, event_id: str) -> Dict[str, Any]:
        checked = self._require_path_segment(event_id, "Event ID")
        return await self._get(f"events/{checked}", {"format": JSON_LD_MEDIA_TYPE})
