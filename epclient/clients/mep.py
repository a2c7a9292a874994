"""Members of the European Parliament."""

from typing import Any, Dict, Optional

from ..constants import DEFAULT_PAGE_LIMIT, JSON_LD_MEDIA_TYPE
from ..domain.exceptions import APIError
from ..domain.models import PaginatedResponse
from .base import BaseEPClient
from .jsonld import items_of


def normalize_mep_id(mep_id: str) -> str:
    """Accept ``124936``, ``MEP-124936`` or ``person/124936``."""
    if mep_id.startswith("MEP-"):
        return mep_id[len("MEP-") :]
    if mep_id.startswith("person/"):
        return mep_id[len("person/") :]
    return mep_id


class MEPClient(BaseEPClient):
    async def get_meps(
        self,
        country: Optional[str] = None,
        group: Optional[str] = None,
        committee: Optional[str] = None,
        active: Optional[bool] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> PaginatedResponse:
        """
        List MEPs, optionally filtered.

        Args:
            country: ISO 3166-1 alpha-2 country code, e.g. ``SE``
            group: Political group identifier, e.g. ``EPP``
            committee: Committee identifier, e.g. ``ENVI``
            active: True for current MEPs only, False for all
            limit: Page size
            offset: Offset of the first item

        Returns:
            One page of raw MEP items
        """
        params = {
            "country": country,
            "group": group,
            "committee": committee,
            "active": active,
            "limit": limit,
            "offset": offset,
        }
        api_params: Dict[str, Any] = {
            "limit": limit,
            "offset": offset,
            "country-code": country,
            "political-group": group,
            "committee": committee,
        }
        if active is not None:
            api_params["status"] = "current" if active else "all"

        async def operation() -> PaginatedResponse:
            items = items_of(await self._get("meps", api_params))
            return self._page(items, limit or DEFAULT_PAGE_LIMIT, offset or 0)

        return await self._audited(
            "get_meps", params, operation, lambda page: len(page.data)
        )

    async def get_mep_details(self, mep_id: str) -> Dict[str, Any]:
        """Fetch one MEP; raises a 404 ``APIError`` when the API has no record."""
        params = {"id": mep_id}

        async def operation() -> Dict[str, Any]:
            normalized = self._require_path_segment(
                normalize_mep_id(self._require_id(mep_id, "MEP ID")), "MEP ID"
            )
            items = items_of(await self._get(f"meps/{normalized}", {}))
            if not items:
                raise APIError(f"MEP with ID {mep_id} not found", 404)
            return items[0]

        return await self._audited("get_mep_details", params, operation, lambda _: 1)

    async def get_current_meps(
        self, limit: int = DEFAULT_PAGE_LIMIT, offset: int = 0
    ) -> PaginatedResponse:
        return await self._get_page("meps/show-current", limit, offset)

    async def get_incoming_meps(
        self, limit: int = DEFAULT_PAGE_LIMIT, offset: int = 0
    ) -> PaginatedResponse:
        return await self._get_page("meps/show-incoming", limit, offset)

    async def get_outgoing_meps(
        self, limit: int = DEFAULT_PAGE_LIMIT, offset: int = 0
    ) -> PaginatedResponse:
        return await self._get_page("meps/show-outgoing", limit, offset)

    async def get_homonym_meps(
        self, limit: int = DEFAULT_PAGE_LIMIT, offset: int = 0
    ) -> PaginatedResponse:
        return await self._get_page("meps/show-homonyms", limit, offset)

    async def get_mep_declarations(
        self,
        year: Optional[int] = None,
        limit: int = DEFAULT_PAGE_LIMIT,
        offset: int = 0,
    ) -> PaginatedResponse:
        """Financial declarations of MEPs; audited as personal data."""
        params = {"year": year, "limit": limit, "offset": offset}
        return await self._audited(
            "get_mep_declarations",
            params,
            lambda: self._get_page(
                "meps-declarations", limit, offset, extra={"year": year}
            ),
            lambda page: len(page.data),
        )

    async def get_mep_declaration_by_id(self, doc_id: str) -> Dict[str, Any]:
        async def operation() -> Dict[str, Any]:
            checked = self._require_path_segment(doc_id, "Document ID")
            return await self._get(
                f"meps-declarations/{checked}", {"format": JSON_LD_MEDIA_TYPE}
            )

        return await self._audited(
            "get_mep_declaration_by_id", {"doc_id": doc_id}, operation, lambda _: 1
        )

    async def get_meps_feed(
        self, timeframe: Optional[str] = None, start_date: Optional[str] = None
    ) -> Any:
        """Raw change feed of MEP records."""
        return await self._get(
            "meps/feed",
            {
                "format": JSON_LD_MEDIA_TYPE,
                "timeframe": timeframe,
                "start-date": start_date,
            },
        )
