"""Codeforces API client.

Fetches profile, submissions and rating history for one handle and
normalizes every transport or parsing problem into a typed JudgeError:

- RemoteUnavailable: network failure, timeout, HTTP 5xx, rate limiting
- UnknownHandle: the judge reports the handle does not exist
- MalformedResponse: the body is not the JSON envelope we expect

The client never retries; that decision belongs to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

import httpx
import structlog
from pydantic import BaseModel, TypeAdapter, ValidationError

from cptracker.config.app_config import JudgeConfig
from cptracker.judge.models import RatingChange, RemoteProfile, RemoteSubmission

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Fragments of the judge's `comment` that mean the handle doesn't exist
_UNKNOWN_HANDLE_MARKERS = ("not found", "should contain", "is not valid")


# =============================================================================
# ERRORS
# =============================================================================


class JudgeError(Exception):
    """Error while talking to the judge API."""

    def __init__(self, message: str, handle: str | None = None, method: str | None = None):
        self.handle = handle
        self.method = method
        super().__init__(message)


class RemoteUnavailable(JudgeError):
    """Judge API could not be reached or refused to serve the request."""

    pass


class UnknownHandle(JudgeError):
    """Judge API does not know the requested handle."""

    pass


class MalformedResponse(JudgeError):
    """Judge API answered with a payload we cannot trust."""

    pass


# =============================================================================
# RESULTS
# =============================================================================


@dataclass
class JudgeFetch:
    """Independent outcomes of the three per-handle calls."""

    handle: str
    profile: RemoteProfile | None = None
    submissions: list[RemoteSubmission] | None = None
    rating_history: list[RatingChange] | None = None
    errors: dict[str, JudgeError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """True if all three calls succeeded."""
        return not self.errors

    def error_message(self) -> str:
        """Human-readable summary of the failing stages."""
        return "; ".join(f"{stage}: {err}" for stage, err in self.errors.items())


# =============================================================================
# CLIENT
# =============================================================================


class JudgeClient:
    """Read-only client for the Codeforces public API."""

    def __init__(
        self,
        config: JudgeConfig | None = None,
        *,
        client: httpx.Client | None = None,
    ) -> None:
        self.config = config or JudgeConfig()
        if client is None:
            self._client = httpx.Client(
                base_url=self.config.base_url,
                timeout=self.config.timeout,
            )
            self._owns_client = True
        else:
            self._client = client
            self._owns_client = False

    def close(self) -> None:
        """Close the underlying HTTP client if we created it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> JudgeClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Public calls
    # -------------------------------------------------------------------------

    def get_profile(self, handle: str) -> RemoteProfile:
        """Fetch current and max rating for a handle.

        Raises:
            JudgeError: One of RemoteUnavailable, UnknownHandle, MalformedResponse
        """
        result = self._call("user.info", {"handles": handle}, handle)
        if not isinstance(result, list) or not result:
            raise MalformedResponse(
                "user.info returned no users", handle=handle, method="user.info"
            )
        return self._validate(RemoteProfile, result[0], handle, "user.info")

    def get_submissions(self, handle: str, count: int | None = None) -> list[RemoteSubmission]:
        """Fetch the most recent submissions of a handle, newest first.

        Args:
            handle: Judge handle
            count: Result cap, defaults to config.submissions_limit

        Raises:
            JudgeError: One of RemoteUnavailable, UnknownHandle, MalformedResponse
        """
        limit = count or self.config.submissions_limit
        result = self._call(
            "user.status", {"handle": handle, "from": 1, "count": limit}, handle
        )
        return self._validate_list(RemoteSubmission, result, handle, "user.status")

    def get_rating_history(self, handle: str) -> list[RatingChange]:
        """Fetch rated contest participations of a handle.

        Raises:
            JudgeError: One of RemoteUnavailable, UnknownHandle, MalformedResponse
        """
        result = self._call("user.rating", {"handle": handle}, handle)
        return self._validate_list(RatingChange, result, handle, "user.rating")

    def fetch_all(self, handle: str) -> JudgeFetch:
        """Run the three calls independently and collect each outcome."""
        fetch = JudgeFetch(handle=handle)

        fetch.profile = self._capture(fetch, "profile", lambda: self.get_profile(handle))
        fetch.submissions = self._capture(
            fetch, "submissions", lambda: self.get_submissions(handle)
        )
        fetch.rating_history = self._capture(
            fetch, "rating_history", lambda: self.get_rating_history(handle)
        )

        logger.debug(
            "judge.fetch_completed",
            handle=handle,
            ok=fetch.ok,
            failed_stages=list(fetch.errors),
        )
        return fetch

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    @staticmethod
    def _capture(fetch: JudgeFetch, stage: str, call: Callable[[], T]) -> T | None:
        try:
            return call()
        except JudgeError as e:
            fetch.errors[stage] = e
            return None

    def _call(self, method: str, params: dict[str, Any], handle: str) -> Any:
        """GET one API method and return the `result` of an OK envelope."""
        try:
            response = self._client.get(f"/{method}", params=params)
        except httpx.TimeoutException as e:
            logger.warning("judge.request_timeout", method=method, handle=handle)
            raise RemoteUnavailable(
                f"{method} timed out: {e}", handle=handle, method=method
            ) from e
        except httpx.HTTPError as e:
            logger.warning("judge.request_failed", method=method, handle=handle, error=str(e))
            raise RemoteUnavailable(
                f"{method} request failed: {e}", handle=handle, method=method
            ) from e

        if response.status_code >= 500:
            raise RemoteUnavailable(
                f"{method} returned HTTP {response.status_code}",
                handle=handle,
                method=method,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponse(
                f"{method} returned non-JSON payload (HTTP {response.status_code})",
                handle=handle,
                method=method,
            ) from e

        if not isinstance(data, dict) or "status" not in data:
            raise MalformedResponse(
                f"{method} response has no status field", handle=handle, method=method
            )

        if data["status"] != "OK":
            comment = str(data.get("comment") or "unknown error")
            if any(marker in comment.lower() for marker in _UNKNOWN_HANDLE_MARKERS):
                raise UnknownHandle(
                    f"Failed to fetch {method}: {comment}", handle=handle, method=method
                )
            raise RemoteUnavailable(
                f"Failed to fetch {method}: {comment}", handle=handle, method=method
            )

        if "result" not in data:
            raise MalformedResponse(
                f"{method} response has no result field", handle=handle, method=method
            )

        return data["result"]

    @staticmethod
    def _validate(model: type[BaseModel], payload: Any, handle: str, method: str) -> Any:
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise MalformedResponse(
                f"{method} payload invalid: {e.error_count()} error(s)",
                handle=handle,
                method=method,
            ) from e

    @staticmethod
    def _validate_list(model: type[BaseModel], payload: Any, handle: str, method: str) -> list:
        try:
            return TypeAdapter(list[model]).validate_python(payload)
        except ValidationError as e:
            raise MalformedResponse(
                f"{method} payload invalid: {e.error_count()} error(s)",
                handle=handle,
                method=method,
            ) from e
