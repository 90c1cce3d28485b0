import aiohttp
import asyncio
import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from src.domain.exceptions import (
    AuthError,
    RateLimitError,
    TransientError,
    UpstreamError,
    ValidationError,
)

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 10.0
CONNECT_TIMEOUT_SECONDS = 5.0
# Transient failures get exactly one more attempt.
MAX_RETRIES = 1
BACKOFF_BASE_SECONDS = 1.0
USER_AGENT = "portfolio-aggregator/1.0"


def _reset_from_headers(headers) -> Optional[str]:
    """Reads the quota reset moment from rate-limit headers as an ISO-8601 string."""
    reset = headers.get("X-RateLimit-Reset")
    if reset:
        try:
            return datetime.fromtimestamp(int(reset), tz=timezone.utc).isoformat()
        except (TypeError, ValueError, OverflowError):
            logger.debug(f"Ignoring unparseable X-RateLimit-Reset header: {reset!r}")
    retry_after = headers.get("Retry-After")
    if retry_after:
        try:
            return (datetime.now(timezone.utc) + timedelta(seconds=int(retry_after))).isoformat()
        except (TypeError, ValueError):
            logger.debug(f"Ignoring unparseable Retry-After header: {retry_after!r}")
    return None


class RestClient:
    """
    Base client for a bearer-authenticated JSON REST API.

    Classifies failures into the upstream error taxonomy and retries
    transient ones once with backoff. Authentication and quota failures are
    raised immediately.
    """

    source = "upstream"

    def __init__(self, token: str, base_url: str, timeout: float = REQUEST_TIMEOUT_SECONDS):
        self.headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        }
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout, connect=min(timeout, CONNECT_TIMEOUT_SECONDS))

    def _check_status(self, response, path: str) -> None:
        status = response.status
        if status < 400:
            return

        if status == 401:
            raise AuthError(f"Credential rejected for {path} (401).", source=self.source, status=status)

        if status == 429 or (status == 403 and (
            response.headers.get("X-RateLimit-Remaining") == "0" or "Retry-After" in response.headers
        )):
            raise RateLimitError(source=self.source, reset_at=_reset_from_headers(response.headers), status=status)

        if status == 403:
            raise AuthError(f"Access denied for {path} (403).", source=self.source, status=status)

        if status >= 500:
            raise TransientError(f"Server error ({status}) for {path}.", source=self.source, status=status)

        raise UpstreamError(f"Request for {path} failed with status {status}.", source=self.source, status=status)

    async def get_json(
        self,
        session: aiohttp.ClientSession,
        path: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Issues a GET request and returns the decoded JSON body.

        Raises:
            AuthError, RateLimitError: Immediately, without retrying.
            TransientError: After the retry budget is spent.
            ValidationError: If the body is not valid JSON.
            UpstreamError: On any other client error status.
        """
        url = f"{self.base_url}{path}"
        last_error: Optional[TransientError] = None

        for attempt in range(MAX_RETRIES + 1):
            try:
                async with session.get(url, params=params, headers=self.headers, timeout=self.timeout) as response:
                    self._check_status(response, path)
                    try:
                        return await response.json()
                    except (aiohttp.ContentTypeError, ValueError) as e:
                        raise ValidationError(f"Response for {path} is not valid JSON: {e}", source=self.source) from e
            except TransientError as e:
                last_error = e
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_error = TransientError(
                    f"Request for {path} failed: {str(e) or type(e).__name__}", source=self.source
                )

            if attempt < MAX_RETRIES:
                sleep_time = BACKOFF_BASE_SECONDS * (2 ** attempt) + random.uniform(0, 1)
                logger.warning(
                    f"{last_error} Retrying in {sleep_time:.1f}s "
                    f"(attempt {attempt + 1}/{MAX_RETRIES + 1})..."
                )
                await asyncio.sleep(sleep_time)

        raise last_error
