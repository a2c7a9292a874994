"""Parliamentary committees and other corporate bodies."""

from typing import Any, Dict, Optional

from ..constants import DEFAULT_PAGE_LIMIT
from ..domain.exceptions import APIError, RemoteRejectionError
from ..domain.models import PaginatedResponse
from ..logging import debug, LogRecord, LogEvent
from .base import BaseEPClient
from .jsonld import extract_field, items_of

STANDING_COMMITTEE_CLASSIFICATION = "COMMITTEE_PARLIAMENTARY_STANDING"
ID_FIELDS = ("body_id", "id", "identifier")
ABBREVIATION_FIELDS = ("notation", "skos:notation")


class CommitteeClient(BaseEPClient):
    async def get_committee_info(
        self,
        committee_id: Optional[str] = None,
        abbreviation: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Resolve a committee by abbreviation (``ENVI``) or body id.

        The body is first fetched directly; if the API rejects that lookup the
        standing committee list is searched. Raises a 404 ``APIError`` when
        neither finds it.
        """
        params = {"id": committee_id, "abbreviation": abbreviation}
        search_term = abbreviation or committee_id or ""

        async def operation() -> Dict[str, Any]:
            self._require_path_segment(search_term, "Committee id or abbreviation")
            direct = await self._fetch_committee_directly(search_term)
            if direct is not None:
                return direct
            found = await self._search_committee_in_list(search_term)
            if found is not None:
                return found
            raise APIError(f"Committee not found: {search_term}", 404)

        return await self._audited("get_committee_info", params, operation, lambda _: 1)

    async def _fetch_committee_directly(self, body_id: str) -> Optional[Dict[str, Any]]:
        try:
            items = items_of(await self._get(f"corporate-bodies/{body_id}", {}))
        except RemoteRejectionError as e:
            debug(
                LogRecord(
                    event=LogEvent.FETCH_FAILURE.value,
                    message="Direct committee lookup rejected, searching list",
                    data={"body_id": body_id, "status_code": e.status_code},
                )
            )
            return None
        return items[0] if items else None

    async def _search_committee_in_list(
        self, search_term: str
    ) -> Optional[Dict[str, Any]]:
        response = await self._get(
            "corporate-bodies",
            {
                "body-classification": STANDING_COMMITTEE_CLASSIFICATION,
                "limit": DEFAULT_PAGE_LIMIT,
            },
        )
        for item in items_of(response):
            body_id = extract_field(item, ID_FIELDS)
            abbreviation = extract_field(item, ABBREVIATION_FIELDS) or body_id
            if search_term in (body_id, abbreviation):
                return item
        return None

    async def get_current_corporate_bodies(
        self, limit: int = DEFAULT_PAGE_LIMIT, offset: int = 0
    ) -> PaginatedResponse:
        return await self._get_page("corporate-bodies/show-current", limit, offset)
