"""
Marketplace API Client Module
HTTP transport and retrying request executor shared by the Wildberries and Ozon integrations.

Features:
- One request contract, two transports (requests.Session / host httplib2.Http)
- JSON body serialization with explicit failure
- Fixed-delay retry on transient 5xx errors
- Typed errors with 401/403 distinction
- Configurable via environment variables
"""

import os
import json
import time
import logging
import threading
import httplib2
import requests
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Callable

# Configure logging
logger = logging.getLogger(__name__)


# =============================================================================
# Custom Exceptions
# =============================================================================

class MarketplaceError(Exception):
    """Base exception for marketplace sync errors."""
    def __init__(self, message: str, status_code: int = None, response_body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class TransportError(MarketplaceError):
    """Network-level failure reaching the API (no HTTP status)."""
    pass


class SerializationError(MarketplaceError):
    """Request body could not be JSON-encoded."""
    pass


class ApiError(MarketplaceError):
    """Non-2xx response that is fatal or survived all retries."""
    def __init__(self, status: int, path: str, body: Any = None, log_prefix: str = "api"):
        self.status = status
        self.path = path
        self.body = body
        super().__init__(
            f"{log_prefix} API error {status} on {path}: {describe_status(status)}. "
            f"Body: {_body_to_str(body)[:500]}",
            status_code=status,
            response_body=body
        )


def describe_status(status: int) -> str:
    """Operator-facing hint for a failed status code."""
    if status == 401:
        return "401 Unauthorized - check the store token"
    if status == 403:
        return "403 Forbidden - token has no access to this endpoint"
    if 500 <= status < 600:
        return "server error"
    return "request rejected"


def _body_to_str(body: Any) -> str:
    if isinstance(body, str):
        return body
    try:
        return json.dumps(body, ensure_ascii=False)
    except (TypeError, ValueError):
        return repr(body)


# =============================================================================
# Request preparation (shared by every transport)
# =============================================================================

@dataclass(frozen=True)
class ApiRequestConfig:
    """Already-resolved API settings for one marketplace/store."""
    base_url: str
    auth_headers: Dict[str, str] = field(default_factory=dict)
    log_prefix: str = "api"


@dataclass(frozen=True)
class ApiResponse:
    """Raw response: status code and undecoded body."""
    status: int
    content: bytes = b""

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def build_url(base_url: str, path: str) -> str:
    """Join base URL and path, normalizing the leading slash."""
    normalized = path if path.startswith("/") else f"/{path}"
    return f"{base_url.rstrip('/')}{normalized}"


def build_headers(config: ApiRequestConfig, headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Accept default, then auth headers, then caller headers (caller wins)."""
    merged = {"Accept": "application/json"}
    merged.update(config.auth_headers or {})
    merged.update(headers or {})
    return merged


def _has_header(headers: Dict[str, str], name: str) -> bool:
    return any(key.lower() == name.lower() for key in headers)


def serialize_body(body: Any, headers: Dict[str, str], log_prefix: str) -> Optional[str]:
    """
    Serialize a request body.

    Strings pass through untouched. Any other value is JSON-encoded and
    Content-Type: application/json is added if the caller did not set one.

    Raises:
        SerializationError: If the value cannot be JSON-encoded
    """
    if body is None:
        return None

    if not isinstance(body, str):
        try:
            body = json.dumps(body, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            logger.error(f"[{log_prefix}] JSON serialization failed: {e}")
            raise SerializationError(f"{log_prefix} JSON serialization failed: {e}") from e

    if not _has_header(headers, "Content-Type"):
        headers["Content-Type"] = "application/json"

    return body


def parse_body(text: str) -> Any:
    """Best-effort JSON, else the raw text."""
    if not text:
        return ""
    try:
        return json.loads(text)
    except ValueError:
        return text


# =============================================================================
# Transports
# =============================================================================

class HttpClient:
    """
    One HTTP request, no retries, no status classification.

    Subclasses implement _send(); request() never raises on non-2xx.
    """

    def request(
        self,
        config: ApiRequestConfig,
        path: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        body: Any = None
    ) -> ApiResponse:
        url = build_url(config.base_url, path)
        merged_headers = build_headers(config, headers)
        payload = serialize_body(body, merged_headers, config.log_prefix)

        logger.debug(f"[{config.log_prefix}] {method} {url}")
        try:
            return self._send(method.upper(), url, merged_headers, payload)
        except TransportError as e:
            logger.error(f"[{config.log_prefix}] transport error on {method} {url}: {e}")
            raise TransportError(f"{config.log_prefix} request failed: {e}") from e

    def _send(self, method: str, url: str, headers: Dict[str, str], payload: Optional[str]) -> ApiResponse:
        raise NotImplementedError


class RequestsHttpClient(HttpClient):
    """Direct transport over a pooled requests.Session."""

    def __init__(self, session: requests.Session = None, timeout: float = None):
        self.session = session or requests.Session()
        self.timeout = timeout or float(os.environ.get("MP_SYNC_HTTP_TIMEOUT", 60))

    def _send(self, method, url, headers, payload):
        data = payload.encode("utf-8") if payload is not None else None
        try:
            response = self.session.request(method, url, headers=headers, data=data, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise TransportError(f"{type(e).__name__}: {e}") from e
        return ApiResponse(status=response.status_code, content=response.content or b"")


class HostedHttpClient(HttpClient):
    """
    Transport through the spreadsheet host's network primitive.

    The host hands out an httplib2.Http-compatible object (the same transport
    the Google API client runs on). It only offers request(uri, method, body,
    headers) -> (response, content): no sessions, no retries.

    httplib2.Http is not thread-safe. With `http_factory` every thread gets
    its own Http object; a single shared `http` is used under a lock.
    """

    def __init__(self, http=None, http_factory: Optional[Callable[[], Any]] = None):
        if http is None and http_factory is None:
            raise ValueError("HostedHttpClient requires the host http object")
        self.http = http
        self.http_factory = http_factory
        self._local = threading.local()
        self._lock = threading.Lock()

    def _thread_http(self):
        http = getattr(self._local, "http", None)
        if http is None:
            http = self._local.http = self.http_factory()
        return http

    def _request(self, method, url, headers, payload):
        if self.http_factory is not None:
            return self._thread_http().request(url, method=method, body=payload, headers=headers)
        with self._lock:
            return self.http.request(url, method=method, body=payload, headers=headers)

    def _send(self, method, url, headers, payload):
        try:
            response, content = self._request(method, url, headers, payload)
        except (httplib2.HttpLib2Error, OSError) as e:
            raise TransportError(f"{type(e).__name__}: {e}") from e
        return ApiResponse(status=int(response.status), content=content or b"")


# =============================================================================
# Retrying executor
# =============================================================================

class MarketplaceClient:
    """
    Retrying request executor with statistics.

    Usage:
        client = MarketplaceClient(RequestsHttpClient())
        data = client.post(config, "/api/v2/nm-report/downloads", body=payload)

    Configuration via environment variables:
        MP_SYNC_MAX_ATTEMPTS: Max attempts per request (default: 3)
        MP_SYNC_RETRY_DELAY: Fixed delay between attempts in seconds (default: 2.0)
    """

    def __init__(
        self,
        http_client: HttpClient,
        max_attempts: int = None,
        retry_delay: float = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.http_client = http_client
        self.max_attempts = max_attempts or int(os.environ.get("MP_SYNC_MAX_ATTEMPTS", 3))
        if retry_delay is None:
            retry_delay = float(os.environ.get("MP_SYNC_RETRY_DELAY", 2.0))
        self.retry_delay = retry_delay
        self.sleep = sleep

        self.stats = {
            "requests": 0,
            "retries": 0,
            "errors": 0
        }
        self._stats_lock = threading.Lock()

    def _count(self, key: str):
        # Worker threads share one client during overlapping report polls
        with self._stats_lock:
            self.stats[key] += 1

    def request(
        self,
        config: ApiRequestConfig,
        path: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        body: Any = None
    ) -> Any:
        """
        Make a request, retrying 5xx responses with a fixed delay.

        Returns:
            Parsed JSON body, or raw text if the body is not JSON

        Raises:
            ApiError: On 4xx, or 5xx after max_attempts
            TransportError: On network failure (not retried)
            SerializationError: If body cannot be encoded
        """
        attempt = 0

        while True:
            attempt += 1
            self._count("requests")
            response = self.http_client.request(config, path, method=method, headers=headers, body=body)

            if response.ok:
                return parse_body(response.text)

            data = parse_body(response.text)

            if 500 <= response.status < 600 and attempt < self.max_attempts:
                self._count("retries")
                logger.warning(
                    f"[{config.log_prefix}] {path} -> HTTP {response.status}. "
                    f"Retry {attempt}/{self.max_attempts} in {self.retry_delay:.1f}s"
                )
                self.sleep(self.retry_delay)
                continue

            self._count("errors")
            error = ApiError(response.status, path, data, log_prefix=config.log_prefix)
            logger.error(str(error))
            raise error

    def get(self, config: ApiRequestConfig, path: str, **kwargs) -> Any:
        """Make a GET request."""
        return self.request(config, path, method="GET", **kwargs)

    def post(self, config: ApiRequestConfig, path: str, **kwargs) -> Any:
        """Make a POST request."""
        return self.request(config, path, method="POST", **kwargs)

    def get_stats(self) -> dict:
        """Get request statistics."""
        with self._stats_lock:
            return self.stats.copy()


def request_with_retry(
    http_client: HttpClient,
    config: ApiRequestConfig,
    path: str,
    method: str = "GET",
    headers: Optional[Dict[str, str]] = None,
    body: Any = None,
    max_attempts: int = 3,
    retry_delay: float = 2.0,
    sleep: Callable[[float], None] = time.sleep
) -> Any:
    """
    Convenience function for a single retried request.

    For use where holding a MarketplaceClient is overkill (e.g. ping).
    """
    client = MarketplaceClient(
        http_client,
        max_attempts=max_attempts,
        retry_delay=retry_delay,
        sleep=sleep
    )
    return client.request(config, path, method=method, headers=headers, body=body)
