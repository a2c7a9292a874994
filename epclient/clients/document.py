"""Legislative and plenary documents."""

from typing import Any, Dict, Optional

from ..constants import DEFAULT_PAGE_LIMIT, JSON_LD_MEDIA_TYPE
from ..domain.exceptions import APIError
from ..domain.models import PaginatedResponse
from .base import BaseEPClient
from .jsonld import extract_field, items_of

DOCUMENT_SEARCH_DEFAULT_LIMIT = 20

# Caller-facing document types and the EP work-type they map to
DOCUMENT_TYPE_WORK_TYPES = {
    "REPORT": "REPORT_PLENARY",
    "AMENDMENT": "AMENDMENT_LIST",
    "RESOLUTION": "RESOLUTION_MOTION",
    "ADOPTED": "TEXT_ADOPTED",
}

TITLE_FIELDS = ("title", "title_dcterms", "label")
SUMMARY_FIELDS = ("summary", "description")
ID_FIELDS = ("work_id", "identifier", "id")
COMMITTEE_FIELDS = ("committee", "creator")
DATE_FIELDS = ("document_date", "date", "dateDocument")


def _matches_keyword(item: Dict[str, Any], keyword: str) -> bool:
    needle = keyword.lower()
    return any(
        needle in extract_field(item, fields).lower()
        for fields in (TITLE_FIELDS, SUMMARY_FIELDS, ID_FIELDS)
    )


class DocumentClient(BaseEPClient):
    async def search_documents(
        self,
        keyword: str,
        document_type: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        committee: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> PaginatedResponse:
        """
        Search documents by keyword.

        ``document_type`` and the year of ``date_from`` are sent to the API;
        keyword, committee and ``date_to`` are applied to the fetched page.
        ``total`` and ``has_more`` describe the unfiltered page.
        """
        params = {
            "keyword": keyword,
            "document_type": document_type,
            "date_from": date_from,
            "date_to": date_to,
            "committee": committee,
            "limit": limit,
            "offset": offset,
        }
        requested_limit = limit or DOCUMENT_SEARCH_DEFAULT_LIMIT
        current_offset = offset or 0

        async def operation() -> PaginatedResponse:
            if keyword is None or keyword.strip() == "":
                raise APIError("keyword is required and must not be empty", 400)

            api_params: Dict[str, Any] = {"limit": limit, "offset": offset}
            if document_type:
                api_params["work-type"] = DOCUMENT_TYPE_WORK_TYPES.get(
                    document_type.upper(), document_type
                )
            if date_from:
                api_params["year"] = date_from[:4]

            items = items_of(await self._get("documents", api_params))
            page_size = len(items)
            filtered = [item for item in items if _matches_keyword(item, keyword)]
            if committee:
                needle = committee.lower()
                filtered = [
                    item
                    for item in filtered
                    if needle in extract_field(item, COMMITTEE_FIELDS).lower()
                ]
            if date_to:
                filtered = [
                    item
                    for item in filtered
                    if extract_field(item, DATE_FIELDS)[:10] <= date_to
                ]
            return self._page(
                filtered,
                requested_limit,
                current_offset,
                total=current_offset + page_size,
                has_more=page_size == requested_limit,
            )

        return await self._audited(
            "search_documents", params, operation, lambda page: len(page.data)
        )

    async def get_plenary_documents(
        self, year: Optional[int] = None, limit: int = DEFAULT_PAGE_LIMIT, offset: int = 0
    ) -> PaginatedResponse:
        return await self._get_page(
            "plenary-documents", limit, offset, extra={"year": year}
        )

    async def get_committee_documents(
        self, year: Optional[int] = None, limit: int = DEFAULT_PAGE_LIMIT, offset: int = 0
    ) -> PaginatedResponse:
        return await self._get_page(
            "committee-documents", limit, offset, extra={"year": year}
        )

    async def get_document_by_id(self, doc_id: str) -> Dict[str, Any]:
        checked = self._require_path_segment(doc_id, "Document ID")
        return await self._get(f"documents/{checked}", {"format": JSON_LD_MEDIA_TYPE})
