"""MythX analysis service client.

Submits an AnalysisRequest and waits for its result. A job moves through

    submitting -> queued -> running -> succeeded | failed | timed_out

`timed_out` is a client-side deadline only: the remote job is not
cancelled and may still finish on the service.

Waiting goes through the injected `clock` and `sleep` callables so tests
can drive the state machine with a fake clock instead of sleeping.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from mythscan import __version__
from mythscan.config.settings import Credentials, ModeTiming, Settings
from mythscan.exceptions import SubmissionRejected, TransientNetworkError
from mythscan.models.analysis import (
    SERVICE_STATUSES,
    AnalysisRequest,
    AnalysisResult,
    AnalysisStatus,
    RawIssue,
)


logger = logging.getLogger(__name__)

USER_AGENT = f"mythscan/{__version__}"

# Responses worth retrying; any other 4xx is fatal.
RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class _DeadlineExceeded(Exception):
    """The deadline passed while waiting to retry."""


class MythXClient:
    """Client for the MythX v1 API."""

    def __init__(
        self,
        credentials: Credentials,
        api_url: str = "https://api.mythx.io",
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        poll_interval: float = 5.0,
        max_poll_interval: float = 30.0,
        request_timeout: float = 30.0,
    ):
        """Initialize client.

        Args:
            credentials: Identity used to log in
            api_url: Service base URL
            http_client: Client to send requests with (None = one per analysis)
            clock: Monotonic time source in seconds
            sleep: Coroutine function suspending for a number of seconds
            max_retries: Retries for a request failing with a transient fault
            retry_delay: First retry backoff in seconds, doubled per retry
            poll_interval: First status poll interval in seconds
            max_poll_interval: Poll interval ceiling in seconds
            request_timeout: Per-request HTTP timeout in seconds
        """
        self.credentials = credentials
        self.api_url = api_url.rstrip("/")
        self.clock = clock
        self.sleep = sleep
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.poll_interval = poll_interval
        self.max_poll_interval = max_poll_interval
        self.request_timeout = request_timeout
        self._http_client = http_client
        self._access_token: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "MythXClient":
        return cls(
            credentials=settings.credentials(),
            api_url=settings.api_url,
            max_retries=settings.max_poll_retries,
            poll_interval=settings.poll_interval,
            max_poll_interval=settings.max_poll_interval,
            request_timeout=settings.request_timeout,
            **kwargs,
        )

    async def analyze(self, request: AnalysisRequest, timing: ModeTiming) -> AnalysisResult:
        """Submit a request and wait for a terminal result.

        Args:
            request: The analysis request
            timing: Initial delay and deadline, both measured from submission

        Returns:
            AnalysisResult in a terminal status

        Raises:
            SubmissionRejected: Authentication or validation failure
            TransientNetworkError: Network faults outlasted the retries
        """
        if self._http_client is not None:
            return await self._analyze(self._http_client, request, timing)

        async with httpx.AsyncClient(
            timeout=self.request_timeout,
            headers={"User-Agent": USER_AGENT},
        ) as client:
            return await self._analyze(client, request, timing)

    async def _analyze(
        self,
        client: httpx.AsyncClient,
        request: AnalysisRequest,
        timing: ModeTiming,
    ) -> AnalysisResult:
        await self._login(client)

        response = await self._request(client, "POST", "/v1/analyses", resend=False, json=request.to_payload())
        body = self._object(response)
        uuid = body.get("uuid")
        if not uuid:
            raise SubmissionRejected("Analysis service accepted the request without returning a job id")

        submitted_at = self.clock()
        deadline = submitted_at + timing.timeout
        result = AnalysisResult(uuid=uuid, status=self._parse_status(body.get("status")))
        logger.info("Submitted analysis %s (%s)", uuid, result.status.value)

        # The service has nothing to report before the initial delay, unless
        # it answered from its cache.
        if not result.status.is_terminal:
            await self.sleep(max(0.0, min(timing.initial_delay, deadline - self.clock())))

        interval = self.poll_interval
        while True:
            if self.clock() >= deadline:
                return self._time_out(result, timing)

            try:
                status_body = self._object(await self._authorized(client, f"/v1/analyses/{uuid}", deadline))
            except _DeadlineExceeded:
                return self._time_out(result, timing)

            status = self._parse_status(status_body.get("status"))
            if status != result.status:
                logger.info("Analysis %s: %s -> %s", uuid, result.status.value, status.value)
            result.status = status

            if status == AnalysisStatus.FAILED:
                result.error = status_body.get("error") or "Analysis failed on the service"
                result.raw_response = status_body
                return result

            if status == AnalysisStatus.SUCCEEDED:
                try:
                    issues_response = await self._authorized(client, f"/v1/analyses/{uuid}/issues", deadline)
                except _DeadlineExceeded:
                    return self._time_out(result, timing)
                issues_body = self._json(issues_response)
                result.raw_response = issues_body
                result.issues = self._parse_issues(issues_body)
                return result

            remaining = deadline - self.clock()
            if remaining <= 0:
                return self._time_out(result, timing)
            await self.sleep(min(interval, remaining))
            interval = min(interval * 1.5, self.max_poll_interval)

    async def _login(self, client: httpx.AsyncClient) -> None:
        response = await self._request(
            client,
            "POST",
            "/v1/auth/login",
            json={"ethAddress": self.credentials.eth_address, "password": self.credentials.password},
        )
        tokens = self._object(response).get("jwtTokens") or {}
        if not tokens.get("access"):
            raise SubmissionRejected("Login response did not contain an access token")
        self._access_token = tokens["access"]
        logger.debug("Logged in to %s as %s", self.api_url, self.credentials.eth_address)

    async def _authorized(self, client: httpx.AsyncClient, path: str, deadline: float) -> httpx.Response:
        """GET with the access token, logging in again once if it expired."""
        try:
            return await self._request(client, "GET", path, deadline=deadline)
        except SubmissionRejected as e:
            if e.status_code != 401:
                raise
            logger.info("Access token rejected, logging in again")
            await self._login(client)
            return await self._request(client, "GET", path, deadline=deadline)

    async def _request(
        self,
        client: httpx.AsyncClient,
        method: str,
        path: str,
        deadline: Optional[float] = None,
        resend: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request, retrying transient faults with exponential backoff.

        With `resend=False` only faults that guarantee the service never
        received the request are retried (connection failures and HTTP 429);
        a timeout or server error after sending may leave a job behind.
        """
        headers = {}
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"

        attempt = 0
        while True:
            try:
                response = await client.request(method, f"{self.api_url}{path}", headers=headers, **kwargs)
            except httpx.TransportError as e:
                error = f"{type(e).__name__}: {e}"
                if not resend and not isinstance(e, (httpx.ConnectError, httpx.ConnectTimeout)):
                    raise TransientNetworkError(
                        f"{method} {path} failed ({error}); not resending since the service may have accepted it"
                    ) from e
            else:
                if response.status_code < 400:
                    return response
                if response.status_code not in RETRYABLE_STATUS_CODES:
                    raise SubmissionRejected(
                        f"{method} {path} rejected with HTTP {response.status_code}: {self._error_message(response)}",
                        status_code=response.status_code,
                    )
                error = f"HTTP {response.status_code}"
                if not resend and response.status_code != 429:
                    raise TransientNetworkError(
                        f"{method} {path} failed ({error}); not resending since the service may have accepted it"
                    )

            if attempt >= self.max_retries:
                raise TransientNetworkError(f"{method} {path} failed after {attempt + 1} attempts: {error}")

            delay = self.retry_delay * (2 ** attempt)
            if deadline is not None:
                remaining = deadline - self.clock()
                if remaining <= 0:
                    raise _DeadlineExceeded()
                delay = min(delay, remaining)

            attempt += 1
            logger.warning("%s %s failed (%s), retry %d/%d in %.1fs", method, path, error, attempt, self.max_retries, delay)
            await self.sleep(delay)

    def _time_out(self, result: AnalysisResult, timing: ModeTiming) -> AnalysisResult:
        logger.warning("Analysis %s still %s after %.0fs, giving up", result.uuid, result.status.value, timing.timeout)
        result.status = AnalysisStatus.TIMED_OUT
        return result

    @staticmethod
    def _parse_status(value: Optional[str]) -> AnalysisStatus:
        status = SERVICE_STATUSES.get((value or "").strip().lower())
        if status is None:
            logger.debug("Unknown analysis status %r, treating as running", value)
            return AnalysisStatus.RUNNING
        return status

    @staticmethod
    def _parse_issues(body: Any) -> List[RawIssue]:
        """Flatten the per-source-format issue groups of an issues response."""
        groups = body if isinstance(body, list) else [body]
        issues = []
        for group in groups:
            if not isinstance(group, dict):
                continue
            for issue in group.get("issues") or []:
                if isinstance(issue, dict):
                    issues.append(RawIssue.from_mythx(issue))
        return issues

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise TransientNetworkError(f"Analysis service returned invalid JSON: {e}") from e

    @classmethod
    def _object(cls, response: httpx.Response) -> Dict[str, Any]:
        body = cls._json(response)
        return body if isinstance(body, dict) else {}

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:200]
        if isinstance(body, dict):
            return str(body.get("error") or body.get("message") or body)
        return str(body)[:200]
