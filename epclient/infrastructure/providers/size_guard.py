"""Streaming response body reader that enforces a byte budget."""

from typing import AsyncIterator, Optional

from ...constants import DEFAULT_MAX_RESPONSE_BYTES
from ...domain.exceptions import RequestTimeoutError, ResponseSizeLimitError
from ...logging import warning, LogRecord, LogEvent
from .resilience import CancellationToken


async def _close(stream: AsyncIterator[bytes]) -> None:
    aclose = getattr(stream, "aclose", None)
    if aclose is not None:
        await aclose()


class ResponseSizeGuard:
    """
    Reads a body stream chunk by chunk, never holding more than ``max_bytes``.

    A declared ``Content-Length`` above the limit is rejected before the
    first chunk is read. Otherwise bytes are counted as they arrive and the
    stream is closed the moment the running total passes the limit, so an
    oversized or lying server cannot make us buffer the whole payload.
    """

    def __init__(self, max_bytes: int = DEFAULT_MAX_RESPONSE_BYTES):
        if max_bytes < 1:
            raise ValueError(f"max_bytes must be positive, got {max_bytes}")
        self.max_bytes = max_bytes

    def _reject(
        self, received: int, endpoint: Optional[str], declared: bool
    ) -> ResponseSizeLimitError:
        warning(
            LogRecord(
                event=LogEvent.SIZE_GUARD_EVENT.value,
                message="Response body exceeds size limit",
                data={
                    "endpoint": endpoint,
                    "max_bytes": self.max_bytes,
                    "received_bytes": received,
                    "declared": declared,
                },
            )
        )
        return ResponseSizeLimitError(
            f"Response size exceeds limit of {self.max_bytes} bytes",
            max_bytes=self.max_bytes,
            received_bytes=received,
            endpoint=endpoint,
        )

    async def read(
        self,
        body_stream: AsyncIterator[bytes],
        *,
        declared_length: Optional[int] = None,
        token: Optional[CancellationToken] = None,
        endpoint: Optional[str] = None,
    ) -> bytes:
        """
        Consume ``body_stream`` into bytes within the budget.

        Args:
            body_stream: Async iterator of body chunks
            declared_length: Value of the Content-Length header, if any
            token: Cancellation token of the enclosing attempt
            endpoint: Endpoint path, for error context

        Returns:
            The complete body

        Raises:
            ResponseSizeLimitError: If the declared or streamed size exceeds max_bytes
            RequestTimeoutError: If the token was cancelled mid-stream
        """
        if declared_length is not None and declared_length > self.max_bytes:
            await _close(body_stream)
            raise self._reject(declared_length, endpoint, declared=True)

        chunks = []
        received = 0
        async for chunk in body_stream:
            if token is not None and token.cancelled:
                await _close(body_stream)
                raise RequestTimeoutError(
                    "Response read abandoned after cancellation", endpoint=endpoint
                )
            received += len(chunk)
            if received > self.max_bytes:
                await _close(body_stream)
                raise self._reject(received, endpoint, declared=False)
            chunks.append(chunk)
        return b"".join(chunks)


async def guard(
    body_stream: AsyncIterator[bytes],
    max_bytes: int,
    *,
    declared_length: Optional[int] = None,
    token: Optional[CancellationToken] = None,
) -> bytes:
    return await ResponseSizeGuard(max_bytes).read(
        body_stream, declared_length=declared_length, token=token
    )
