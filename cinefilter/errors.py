from __future__ import annotations


class ApiError(RuntimeError):
    """Base class for failures reported by (or while talking to) a remote service."""


class ApiHttpError(ApiError):
    """
    Transport failure: a non-2xx response, or no response at all.

    `status_code`/`reason` are None when the request never produced a response.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        reason: str | None = None,
        body_snippet: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason
        self.body_snippet = body_snippet


class ApiResponseError(ApiError):
    """Domain failure: a 2xx response whose payload says the call did not succeed."""
