"""Custom exception hierarchy for epclient.

Every failure that leaves the data-access layer is an ``EPClientException``.
``APIError`` is the error surface of ``fetch``: subclasses that carry a
``status_code`` mean the remote rejected the request, subclasses of
``PipelineError`` never carry one and mean the pipeline itself gave up
(timeout, admission, transport, size or parse failure).
"""

from typing import Optional, Dict, Any


class EPClientException(Exception):
    """Base exception for all epclient-specific exceptions."""

    def __init__(
        self,
        message: str,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.request_id = request_id
        self.details = details or {}


class APIError(EPClientException):
    """Raised when a European Parliament API request fails."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        endpoint: Optional[str] = None,
        request_id: Optional[str] = None,
    ):
        super().__init__(message, request_id, details)
        self.status_code = status_code
        self.endpoint = endpoint

    @property
    def is_remote_rejection(self) -> bool:
        """True when the upstream answered with an error status."""
        return self.status_code is not None


class RemoteRejectionError(APIError):
    """Raised when the EP API answers with a non-2xx status."""

    def __init__(
        self,
        message: str,
        status_code: int,
        details: Optional[Dict[str, Any]] = None,
        endpoint: Optional[str] = None,
        request_id: Optional[str] = None,
    ):
        super().__init__(message, status_code, details, endpoint, request_id)

    @property
    def is_transient(self) -> bool:
        """Server-side (5xx) rejections may succeed on a later attempt."""
        return self.status_code >= 500


class PipelineError(APIError):
    """Base for pipeline-level failures; these never carry a status code."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        endpoint: Optional[str] = None,
        request_id: Optional[str] = None,
    ):
        super().__init__(message, None, details, endpoint, request_id)


class RequestTimeoutError(PipelineError):
    """Raised when an attempt exceeds its deadline. Never retried."""

    def __init__(
        self,
        message: str,
        timeout_ms: Optional[float] = None,
        details: Optional[Dict[str, Any]] = None,
        endpoint: Optional[str] = None,
        request_id: Optional[str] = None,
    ):
        super().__init__(message, details, endpoint, request_id)
        self.timeout_ms = timeout_ms


class RateLimitDeniedError(PipelineError):
    """Raised when the client-side token bucket refuses admission."""

    def __init__(
        self,
        message: str,
        available_tokens: float = 0.0,
        retry_after_ms: Optional[float] = None,
        details: Optional[Dict[str, Any]] = None,
        endpoint: Optional[str] = None,
        request_id: Optional[str] = None,
    ):
        super().__init__(message, details, endpoint, request_id)
        self.available_tokens = available_tokens
        self.retry_after_ms = retry_after_ms


class TransientNetworkError(PipelineError):
    """Raised on connection-level failures (DNS, reset, refused)."""

    pass


class ResponseSizeLimitError(PipelineError):
    """Raised when a response body exceeds the configured byte budget."""

    def __init__(
        self,
        message: str,
        max_bytes: int = 0,
        received_bytes: int = 0,
        details: Optional[Dict[str, Any]] = None,
        endpoint: Optional[str] = None,
        request_id: Optional[str] = None,
    ):
        super().__init__(message, details, endpoint, request_id)
        self.max_bytes = max_bytes
        self.received_bytes = received_bytes


class ResponseParseError(PipelineError):
    """Raised when a response body is not valid JSON."""

    pass


class ConfigurationError(EPClientException):
    """Raised when configuration is invalid or missing."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, request_id, details)
        self.config_key = config_key


class ToolError(EPClientException):
    """Raised when a tool invocation cannot be dispatched."""

    def __init__(
        self,
        message: str,
        tool_name: Optional[str] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, request_id, details)
        self.tool_name = tool_name
