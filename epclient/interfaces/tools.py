"""Tool boundary: maps tool invocations onto sub-client calls.

Every tool returns a :class:`ToolResult`. Failures inside a tool are logged
and turned into an ``is_error`` result whose text names the failed operation;
callers never see a traceback.
"""

import json
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..clients.facade import EuropeanParliamentClient
from ..domain.exceptions import ToolError
from ..enums import QuestionType
from ..logging import debug, error, LogRecord, LogEvent


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolResult(BaseModel):
    content: List[TextContent]
    is_error: bool = False

    @classmethod
    def from_data(cls, data: Any) -> "ToolResult":
        if isinstance(data, BaseModel):
            data = data.model_dump(mode="json")
        return cls(
            content=[
                TextContent(text=json.dumps(data, indent=2, ensure_ascii=False, default=str))
            ]
        )

    @classmethod
    def failure(cls, message: str) -> "ToolResult":
        return cls(content=[TextContent(text=message)], is_error=True)


class _Arguments(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PageArguments(_Arguments):
    limit: int = Field(default=50, ge=1, le=100)
    offset: int = Field(default=0, ge=0)


class GetMEPsArguments(PageArguments):
    country: Optional[str] = Field(default=None, pattern=r"^[A-Z]{2}$")
    group: Optional[str] = Field(default=None, min_length=1, max_length=50)
    committee: Optional[str] = Field(default=None, min_length=1, max_length=100)
    active: bool = True


class GetMEPDetailsArguments(_Arguments):
    id: str = Field(min_length=1, max_length=100)


class GetPlenarySessionsArguments(PageArguments):
    date_from: Optional[str] = Field(default=None, alias="dateFrom")
    date_to: Optional[str] = Field(default=None, alias="dateTo")
    location: Optional[str] = None


class GetCommitteeInfoArguments(_Arguments):
    id: Optional[str] = None
    abbreviation: Optional[str] = None


class SearchDocumentsArguments(PageArguments):
    keyword: str = Field(min_length=1, max_length=200)
    document_type: Optional[str] = Field(default=None, alias="documentType")
    date_from: Optional[str] = Field(default=None, alias="dateFrom")
    date_to: Optional[str] = Field(default=None, alias="dateTo")
    committee: Optional[str] = None
    limit: int = Field(default=20, ge=1, le=100)


class GetParliamentaryQuestionsArguments(PageArguments):
    type: Optional[QuestionType] = None
    author: Optional[str] = None
    topic: Optional[str] = None
    date_from: Optional[str] = Field(default=None, alias="dateFrom")


class TrackLegislationArguments(_Arguments):
    procedure_id: str = Field(alias="procedureId", min_length=1, max_length=100)


class GetProceduresArguments(PageArguments):
    year: Optional[int] = None


class NoArguments(_Arguments):
    pass


@dataclass
class ToolSpec:
    name: str
    operation: str
    arguments: Type[_Arguments]
    handler: Callable[[Any], Awaitable[Any]]


class ToolDispatcher:
    """
    Registry of the tools exposed over the tool protocol.

    Unknown tool names raise :class:`ToolError`; that is a protocol-level
    mistake, not a failed operation.
    """

    def __init__(self, client: EuropeanParliamentClient):
        self._client = client
        self._tools: Dict[str, ToolSpec] = {}
        self._register_defaults()

    def _register(
        self,
        name: str,
        operation: str,
        arguments: Type[_Arguments],
        handler: Callable[[Any], Awaitable[Any]],
    ) -> None:
        self._tools[name] = ToolSpec(name, operation, arguments, handler)

    def _register_defaults(self) -> None:
        c = self._client
        self._register(
            "get_meps",
            "retrieve MEPs",
            GetMEPsArguments,
            lambda a: c.meps.get_meps(
                country=a.country,
                group=a.group,
                committee=a.committee,
                active=a.active,
                limit=a.limit,
                offset=a.offset,
            ),
        )
        self._register(
            "get_mep_details",
            "retrieve MEP details",
            GetMEPDetailsArguments,
            lambda a: c.meps.get_mep_details(a.id),
        )
        self._register(
            "get_plenary_sessions",
            "retrieve plenary sessions",
            GetPlenarySessionsArguments,
            lambda a: c.plenary.get_plenary_sessions(
                date_from=a.date_from,
                date_to=a.date_to,
                location=a.location,
                limit=a.limit,
                offset=a.offset,
            ),
        )
        self._register(
            "get_committee_info",
            "retrieve committee info",
            GetCommitteeInfoArguments,
            lambda a: c.committees.get_committee_info(
                committee_id=a.id, abbreviation=a.abbreviation
            ),
        )
        self._register(
            "search_documents",
            "search documents",
            SearchDocumentsArguments,
            lambda a: c.documents.search_documents(
                keyword=a.keyword,
                document_type=a.document_type,
                date_from=a.date_from,
                date_to=a.date_to,
                committee=a.committee,
                limit=a.limit,
                offset=a.offset,
            ),
        )
        self._register(
            "get_parliamentary_questions",
            "retrieve parliamentary questions",
            GetParliamentaryQuestionsArguments,
            lambda a: c.questions.get_parliamentary_questions(
                question_type=a.type,
                author=a.author,
                topic=a.topic,
                date_from=a.date_from,
                limit=a.limit,
                offset=a.offset,
            ),
        )
        self._register(
            "track_legislation",
            "track legislation",
            TrackLegislationArguments,
            lambda a: c.legislative.track_procedure(a.procedure_id),
        )
        self._register(
            "get_procedures",
            "retrieve procedures",
            GetProceduresArguments,
            lambda a: c.legislative.get_procedures(
                year=a.year, limit=a.limit, offset=a.offset
            ),
        )
        self._register(
            "get_controlled_vocabularies",
            "retrieve controlled vocabularies",
            PageArguments,
            lambda a: c.vocabularies.get_controlled_vocabularies(
                limit=a.limit, offset=a.offset
            ),
        )
        self._register("get_health", "check health", NoArguments, self._health)

    async def _health(self, _: NoArguments) -> Any:
        return self._client.check_health()

    @property
    def tool_names(self) -> List[str]:
        return list(self._tools)

    async def call(
        self, name: str, arguments: Optional[Dict[str, Any]] = None
    ) -> ToolResult:
        """
        Invoke tool ``name`` with raw ``arguments``.

        Args:
            name: Registered tool name
            arguments: JSON object of tool arguments

        Returns:
            The tool's result, ``is_error`` set on failure

        Raises:
            ToolError: If no tool is registered under ``name``
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolError(f"Unknown tool: {name}", tool_name=name)

        request_id = uuid.uuid4().hex
        debug(
            LogRecord(
                event=LogEvent.TOOL_CALL.value,
                message=f"Tool call {name}",
                request_id=request_id,
                data={"tool": name, "arguments": arguments or {}},
            )
        )
        try:
            parsed = tool.arguments.model_validate(arguments or {})
            result = await tool.handler(parsed)
        except ValidationError as e:
            message = f"Failed to {tool.operation}: invalid arguments ({e.error_count()} errors)"
            self._log_failure(name, request_id, message, e)
            return ToolResult.failure(message)
        except Exception as e:
            message = f"Failed to {tool.operation}: {str(e) or type(e).__name__}"
            self._log_failure(name, request_id, message, e)
            return ToolResult.failure(message)
        return ToolResult.from_data(result)

    @staticmethod
    def _log_failure(
        name: str, request_id: str, message: str, exc: Exception
    ) -> None:
        error(
            LogRecord(
                event=LogEvent.TOOL_FAILURE.value,
                message=message,
                request_id=request_id,
                data={"tool": name},
            ),
            exc=exc,
        )
