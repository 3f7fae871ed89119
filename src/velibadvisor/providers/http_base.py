from __future__ import annotations

# `json.dumps` is used only for safe, truncated debug output in error messages.
import json
# `logging` is used to report throttling and provider failures without leaking API keys.
import logging
# `random` is used for small jitter in client-side throttling (avoid synchronized bursts).
import random
# `threading` guards the session pool; a `requests.Session` is never used by two threads at once.
import threading
# `time` provides monotonic clocks and sleeping for client-side throttling.
import time
# `contextmanager` scopes a borrowed session to one request.
from contextlib import contextmanager
# Typing helpers keep our interfaces explicit while we still operate on JSON dicts.
from typing import Any, Iterator, Mapping, MutableMapping, Optional

# `requests` performs HTTP calls; we wrap it to centralize retries, headers, and error handling.
import requests
# `HTTPAdapter` lets us mount a retry policy onto a `requests.Session`.
from requests.adapters import HTTPAdapter
# `Retry` implements backoff for transient failures (rate limits, 5xx), without manual sleep loops.
from urllib3.util.retry import Retry

# Provider failures share one taxonomy so the decision engine can degrade uniformly.
from velibadvisor.errors import ProviderError, ProviderRateLimitError


logger = logging.getLogger(__name__)


class _RateLimiter:
    """
    Minimal client-side throttle.

    This is complementary to urllib3's Retry/backoff:
    - Retry/backoff handles transient errors (429/5xx) after they happen.
    - This throttle keeps us under provider usage policies in the first place
      (Nominatim allows one request per second).
    """

    def __init__(
        self,
        *,
        min_interval_s: float,
        jitter_s: float,
        now_fn=time.monotonic,
        sleep_fn=time.sleep,
    ) -> None:
        self._min_interval_s = max(float(min_interval_s), 0.0)
        self._jitter_s = max(float(jitter_s), 0.0)
        self._now = now_fn
        self._sleep = sleep_fn
        self._next_allowed_at = 0.0
        # Two station lookups may share a client from different threads.
        self._lock = threading.Lock()

    def wait(self) -> None:
        if self._min_interval_s <= 0:
            return
        with self._lock:
            now = float(self._now())
            remaining = self._next_allowed_at - now
            if remaining > 0:
                jitter = random.random() * self._jitter_s if self._jitter_s else 0.0
                self._sleep(remaining + jitter)
                now = float(self._now())
            self._next_allowed_at = now + self._min_interval_s


# `HttpJsonClient` is a small, production-minded JSON-over-HTTP client shared by all providers.
class HttpJsonClient:
    """
    JSON HTTP client with retries, optional throttling, and a pool of reusable sessions (one per in-flight request).

    - No globals: base URL, headers and policy live on the instance.
    - Retries are handled via a requests adapter for transient failures.
    - Any 4xx/5xx becomes a `ProviderError` (429 becomes `ProviderRateLimitError`).
    """

    def __init__(
        self,
        *,
        base_url: str,
        timeout_s: float = 10.0,
        max_retries: int = 2,
        backoff_factor: float = 0.3,
        min_request_interval_s: float = 0.0,
        request_jitter_s: float = 0.0,
        user_agent: str = "velibadvisor/0.1.0",
        default_headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        # Normalize `base_url` so later path joins are consistent (avoid double slashes).
        self._base_url = base_url.rstrip("/")
        # A single timeout value keeps behavior predictable and avoids hanging requests.
        self._timeout_s = timeout_s
        self._max_retries = max_retries
        self._backoff_factor = backoff_factor
        # Provider-specific headers (e.g. an API key) are merged into every request.
        self._headers: dict[str, str] = {"User-Agent": user_agent, "Accept": "application/json"}
        if default_headers:
            self._headers.update(default_headers)

        self._rate_limiter = _RateLimiter(
            min_interval_s=min_request_interval_s,
            jitter_s=request_jitter_s,
        )
        # Sessions are borrowed per request and returned to `_idle`, so the pool never grows past
        # the peak number of concurrent requests however many worker threads come and go.
        self._sessions: list[requests.Session] = []
        self._idle: list[requests.Session] = []
        self._sessions_lock = threading.Lock()
        self._closed = False

    @property
    def base_url(self) -> str:
        return self._base_url

    def _build_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(self._headers)

        # Configure retries for transient failures (rate limiting and 5xx) using urllib3's policy.
        retry = Retry(
            total=self._max_retries,
            connect=self._max_retries,
            read=self._max_retries,
            status=self._max_retries,
            # Backoff grows delays between retries to reduce pressure on the server.
            backoff_factor=self._backoff_factor,
            # Retry only on status codes that are likely transient or rate-limit related.
            status_forcelist=(429, 500, 502, 503, 504),
            allowed_methods=("GET", "POST"),
            # Respect `Retry-After` for 429/503 when present.
            respect_retry_after_header=True,
            # Do not raise inside urllib3; we surface a single `ProviderError` with context.
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        return session

    @contextmanager
    def _session(self) -> Iterator[requests.Session]:
        with self._sessions_lock:
            session = self._idle.pop() if self._idle else None
        if session is None:
            session = self._build_session()
            with self._sessions_lock:
                self._sessions.append(session)
        try:
            yield session
        finally:
            with self._sessions_lock:
                closed = self._closed
                if not closed:
                    self._idle.append(session)
            if closed:
                session.close()

    @property
    def session_count(self) -> int:
        with self._sessions_lock:
            return len(self._sessions)

    def _build_url(self, path: str) -> str:
        # Support absolute URLs so callers can follow provider-supplied links.
        if path.startswith("https://") or path.startswith("http://"):
            return path
        path = path.lstrip("/")
        return f"{self._base_url}/{path}" if path else self._base_url

    def _handle_response(self, resp: requests.Response, *, url: str, params: Any) -> Any:
        if resp.status_code >= 400:
            if resp.status_code == 429:
                retry_after_s: float | None = None
                ra = resp.headers.get("Retry-After")
                if ra:
                    try:
                        retry_after_s = float(ra)
                    except ValueError:
                        retry_after_s = None
                raise ProviderRateLimitError(
                    f"Request failed ({resp.status_code}) url={url} params={params} retry_after={ra} body={resp.text[:500]}",
                    retry_after_s=retry_after_s,
                )
            raise ProviderError(f"Request failed ({resp.status_code}) url={url} params={params} body={resp.text[:500]}")
        try:
            return resp.json()
        except ValueError as e:
            raise ProviderError(f"Non-JSON response from url={url}: {resp.text[:200]}") from e

    def get_json(
        self,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Any:
        # Throttle before making the request (keeps us within provider usage policies).
        self._rate_limiter.wait()
        url = self._build_url(path)
        req_headers: MutableMapping[str, str] = dict(headers or {})
        try:
            with self._session() as session:
                resp = session.get(url, params=params, headers=req_headers, timeout=self._timeout_s)
        except requests.RequestException as e:
            # Network-level failures (DNS, connection reset, read timeout) join the same taxonomy.
            raise ProviderError(f"Request failed url={url}: {e}") from e
        return self._handle_response(resp, url=url, params=params)

    def post_json(
        self,
        path: str,
        *,
        body: Mapping[str, Any],
        headers: Optional[Mapping[str, str]] = None,
    ) -> Any:
        self._rate_limiter.wait()
        url = self._build_url(path)
        req_headers: MutableMapping[str, str] = {"Content-Type": "application/json"}
        if headers:
            req_headers.update(headers)
        try:
            with self._session() as session:
                resp = session.post(
                    url,
                    data=json.dumps(body),
                    headers=req_headers,
                    timeout=self._timeout_s,
                )
        except requests.RequestException as e:
            raise ProviderError(f"Request failed url={url}: {e}") from e
        return self._handle_response(resp, url=url, params=None)

    def close(self) -> None:
        # Close network resources; important for long-running services to avoid open connections.
        with self._sessions_lock:
            self._closed = True
            sessions, self._sessions = self._sessions, []
            self._idle = []
        for session in sessions:
            session.close()

    def __enter__(self) -> "HttpJsonClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
