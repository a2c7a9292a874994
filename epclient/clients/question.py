"""Parliamentary questions."""

from typing import Any, Dict, Optional, Union

from ..constants import DEFAULT_PAGE_LIMIT, JSON_LD_MEDIA_TYPE
from ..domain.models import PaginatedResponse
from ..enums import QuestionType
from .base import BaseEPClient
from .jsonld import extract_field, items_of

QUESTION_WORK_TYPES = {
    QuestionType.Written: "QUESTION_WRITTEN",
    QuestionType.Oral: "QUESTION_ORAL",
}

AUTHOR_FIELDS = ("author", "creator", "workHadParticipation")
TOPIC_FIELDS = ("topic", "title", "label")


class QuestionClient(BaseEPClient):
    async def get_parliamentary_questions(
        self,
        question_type: Optional[Union[QuestionType, str]] = None,
        author: Optional[str] = None,
        topic: Optional[str] = None,
        date_from: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> PaginatedResponse:
        params = {
            "type": question_type,
            "author": author,
            "topic": topic,
            "date_from": date_from,
            "limit": limit,
            "offset": offset,
        }

        async def operation() -> PaginatedResponse:
            api_params: Dict[str, Any] = {"limit": limit, "offset": offset}
            if question_type is not None:
                api_params["work-type"] = QUESTION_WORK_TYPES[
                    QuestionType(str(question_type).upper())
                ]
            if date_from:
                api_params["year"] = date_from[:4]

            items = items_of(await self._get("parliamentary-questions", api_params))
            for value, fields in ((author, AUTHOR_FIELDS), (topic, TOPIC_FIELDS)):
                if value:
                    needle = value.lower()
                    items = [
                        item
                        for item in items
                        if needle in extract_field(item, fields).lower()
                    ]
            return self._page(items, limit or DEFAULT_PAGE_LIMIT, offset or 0)

        return await self._audited(
            "get_parliamentary_questions",
            params,
            operation,
            lambda page: len(page.data),
        )

    async def get_parliamentary_question_by_id(self, doc_id: str) -> Dict[str, Any]:
        checked = self._require_path_segment(doc_id, "Document ID")
        return await self._get(
            f"parliamentary-questions/{checked}", {"format": JSON_LD_MEDIA_TYPE}
        )
