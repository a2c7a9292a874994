"""EP controlled vocabularies."""

from typing import Any, Dict

from ..constants import DEFAULT_PAGE_LIMIT, JSON_LD_MEDIA_TYPE
from ..domain.models import PaginatedResponse
from .base import BaseEPClient


class VocabularyClient(BaseEPClient):
    async def get_controlled_vocabularies(
        self, limit: int = DEFAULT_PAGE_LIMIT, offset: int = 0
    ) -> PaginatedResponse:
        return await self._get_page("controlled-vocabularies", limit, offset)

    async def get_controlled_vocabulary_by_id(self, voc_id: str) -> Dict[str, Any]:
        checked = self._require_path_segment(voc_id, "Vocabulary ID")
        return await self._get(
            f"controlled-vocabularies/{checked}", {"format": JSON_LD_MEDIA_TYPE}
        )
