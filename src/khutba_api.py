"""
Khutba API client with retry, error classification and sample-sermon fallback.

The remote service generates a sermon for a free-text purpose. Every call to
``KhutbaClient.generate`` returns a ``Sermon``: either the generated one or a
bundled sample, tagged with the reason the fallback was used.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import replace
from typing import Any
from collections.abc import Callable

import requests

from connectivity import is_online
from khutba_models import API_BASE_URL, ErrorKind, Sermon
from notifications import (
    FALLBACK_NOTICE,
    ConsoleNotifier,
    Notifier,
    NullNotifier,
    failure_notification,
)
from sample_sermons import pick_sample_sermon

logger = logging.getLogger(__name__)

GENERATE_ENDPOINT = '/generate-khutab'
DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_RETRIES = 2
DEFAULT_BACKOFF_BASE = 1.0
CANCEL_POLL_INTERVAL = 0.05

AUTH_MARKERS = ('unauthenticated', 'authentication token', 'auth')


class KhutbaAPIError(Exception):
    """Base class for failures talking to the khutba service."""

    kind = ErrorKind.OTHER
    retryable = False


class NetworkError(KhutbaAPIError):
    """Connection failure, socket timeout or aborted transfer."""

    kind = ErrorKind.NETWORK
    retryable = True


class OfflineError(NetworkError):
    """The connectivity probe reported no network."""

    retryable = False


class RequestCancelledError(NetworkError):
    """The caller cancelled the request."""

    retryable = False


class RequestTimeoutError(NetworkError):
    """The overall request deadline passed."""

    retryable = False


class AuthenticationError(KhutbaAPIError):
    """The service rejected the request for missing or bad credentials."""

    kind = ErrorKind.AUTH


class HTTPStatusError(KhutbaAPIError):
    """Non-2xx response that is not an authentication failure."""

    retryable = True

    def __init__(self, status_code: int, body: str = ''):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Server responded with {status_code}: {body[:200]}")


class ServerError(HTTPStatusError):
    """5xx response from the service."""

    kind = ErrorKind.SERVER


class InvalidResponseError(KhutbaAPIError):
    """2xx response whose body is not a sermon JSON object."""


def classify_error(error: BaseException) -> ErrorKind:
    """Map any exception onto the network/server/auth/other taxonomy."""
    if isinstance(error, KhutbaAPIError):
        return error.kind
    if isinstance(error, (requests.ConnectionError, requests.Timeout)):
        return ErrorKind.NETWORK
    return ErrorKind.OTHER


def capitalize_purpose(purpose: str) -> str:
    # str.capitalize() would lower-case the rest of the string
    return purpose[:1].upper() + purpose[1:]


class CancelToken:
    """Cooperative cancellation handle.

    Fires when ``cancel()`` is called or when the optional deadline passes,
    whichever comes first. Safe to cancel from another thread.
    """

    def __init__(self, timeout: float | None = None):
        self._event = threading.Event()
        self._reason = ''
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    @classmethod
    def with_timeout(cls, seconds: float) -> CancelToken:
        return cls(timeout=seconds)

    def cancel(self, reason: str = 'cancelled by caller') -> None:
        self._reason = reason
        self._event.set()

    @property
    def reason(self) -> str:
        return self._reason

    @property
    def timed_out(self) -> bool:
        return (not self._event.is_set() and self._deadline is not None
                and time.monotonic() >= self._deadline)

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self.timed_out

    def remaining(self) -> float | None:
        """Seconds until the deadline, or None when there is no deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; return True if the token fired meanwhile."""
        remaining = self.remaining()
        if remaining is not None:
            seconds = min(seconds, remaining)
        self._event.wait(max(0.0, seconds))
        return self.cancelled

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RequestCancelledError(f"Request aborted: {self._reason}")
        if self.timed_out:
            raise RequestTimeoutError("Request timed out waiting for the sermon server")


class KhutbaClient:
    """Requests generated sermons and degrades to sample sermons on failure."""

    def __init__(self, config: dict[str, Any] | None = None,
                 session: requests.Session | None = None,
                 notifier: Notifier | None = None,
                 connectivity_check: Callable[[], bool] | None = None):
        self.config = config or {}
        api_config = self.config.get('api') or {}
        self.base_url = api_config.get('base_url', API_BASE_URL).rstrip('/')
        self.endpoint = api_config.get('endpoint', GENERATE_ENDPOINT)
        self.timeout = float(api_config.get('timeout_seconds', DEFAULT_TIMEOUT))
        self.max_retries = max(0, int(api_config.get('max_retries', DEFAULT_MAX_RETRIES)))
        self.backoff_base = float(api_config.get('backoff_base_seconds', DEFAULT_BACKOFF_BASE))

        self.session = session or requests.Session()
        self._owns_session = session is None
        self.notifier = notifier or self._default_notifier()
        self.connectivity_check = connectivity_check or self._default_connectivity_check()

    def __str__(self) -> str:
        return f"KhutbaClient(url={self.url}, max_retries={self.max_retries})"

    def __enter__(self) -> KhutbaClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.endpoint}"

    def close(self) -> None:
        if self._owns_session:
            self.session.close()

    def _default_notifier(self) -> Notifier:
        if not (self.config.get('notifications') or {}).get('enabled', True):
            return NullNotifier()
        return ConsoleNotifier()

    def _default_connectivity_check(self) -> Callable[[], bool]:
        connectivity = self.config.get('connectivity') or {}
        if not connectivity.get('enabled', True):
            return lambda: True
        kwargs = {}
        if connectivity.get('probe_url'):
            kwargs['probe_url'] = connectivity['probe_url']
        if connectivity.get('timeout_seconds') is not None:
            kwargs['timeout'] = float(connectivity['timeout_seconds'])
        return lambda: is_online(**kwargs)

    def generate(self, purpose: str, cancel_token: CancelToken | None = None) -> Sermon:
        """
        Generate a sermon for ``purpose``.

        Args:
            purpose: Free-text topic for the sermon
            cancel_token: Optional caller cancellation; without one the request
                is bounded by ``api.timeout_seconds``

        Returns:
            The generated sermon, or a sample sermon with ``error_kind`` set.
            Never raises.
        """
        logger.info(f"Generating khutba for purpose: {purpose}")
        try:
            if not self.connectivity_check():
                logger.info("Device is offline, returning sample sermon")
                raise OfflineError("Device is offline")

            token = cancel_token or CancelToken.with_timeout(self.timeout)
            return self._request_with_retries(purpose, token)
        except KhutbaAPIError as e:
            logger.error(f"Error generating khutba: {e}")
            return self._fallback(purpose, e)
        except Exception as e:
            logger.exception(f"Unexpected error generating khutba: {e}")
            return self._fallback(purpose, e)

    def _request_with_retries(self, purpose: str, token: CancelToken) -> Sermon:
        attempts = self.max_retries + 1
        logger.info(f"Calling API at: {self.url}")

        for attempt in range(attempts):
            token.raise_if_cancelled()
            logger.info(f"API attempt {attempt + 1}/{attempts} for purpose: {purpose}")
            try:
                return self._post(purpose, token)
            except KhutbaAPIError as e:
                logger.warning(f"API attempt {attempt + 1} failed: {e}")
                if not e.retryable or attempt + 1 >= attempts:
                    raise

                wait_time = self.backoff_base * (2 ** attempt)
                logger.info(f"Retrying API call in {wait_time:.1f}s "
                            f"(attempt {attempt + 2}/{attempts})")
                if token.wait(wait_time):
                    token.raise_if_cancelled()

        raise KhutbaAPIError("Maximum retries reached")

    def _send(self, purpose: str, token: CancelToken) -> requests.Response:
        """Run the POST on a worker thread so the token can abandon it mid-flight.

        An abandoned worker finishes on its own socket timeout; its response
        is closed and discarded.
        """
        remaining = token.remaining()
        timeout = remaining if remaining is not None else self.timeout
        outcome: dict[str, Any] = {}
        done = threading.Event()
        abandoned = threading.Event()

        def worker():
            try:
                outcome['response'] = self.session.post(
                    self.url,
                    json={'purpose': purpose},
                    headers={
                        'Content-Type': 'application/json',
                        'Accept': 'application/json',
                    },
                    timeout=timeout,
                )
                if abandoned.is_set():
                    outcome['response'].close()
            except Exception as e:
                outcome['error'] = e
            finally:
                done.set()

        threading.Thread(target=worker, name='khutba-post', daemon=True).start()

        while not done.wait(CANCEL_POLL_INTERVAL):
            if token.cancelled:
                abandoned.set()
                logger.info("Abandoning in-flight request")
                token.raise_if_cancelled()
        token.raise_if_cancelled()

        if 'error' in outcome:
            raise outcome['error']
        return outcome['response']

    def _post(self, purpose: str, token: CancelToken) -> Sermon:
        """Issue one POST and turn the outcome into a Sermon or a structured error."""
        try:
            response = self._send(purpose, token)
        except requests.Timeout as e:
            raise NetworkError(f"Request timed out: {e}") from e
        except requests.ConnectionError as e:
            raise NetworkError(f"Network error: {e}") from e
        except requests.RequestException as e:
            raise NetworkError(f"Request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            self._raise_for_status(response)

        try:
            data = response.json()
        except ValueError as e:
            raise InvalidResponseError(f"Response is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise InvalidResponseError(f"Unexpected response payload: {type(data).__name__}")

        return Sermon.from_api(data, purpose, self.base_url)

    def _raise_for_status(self, response: requests.Response) -> None:
        body = response.text or ''
        status = response.status_code
        logger.error(f"Server responded with {status}: {body[:200]}")

        lowered = body.lower()
        if status == 401 or any(marker in lowered for marker in AUTH_MARKERS):
            raise AuthenticationError(f"Authentication required (status {status})")
        if status >= 500:
            raise ServerError(status, body)
        raise HTTPStatusError(status, body)

    def _fallback(self, purpose: str, error: BaseException) -> Sermon:
        error_kind = classify_error(error)
        self._notify(failure_notification(error_kind, str(error)))

        sample = pick_sample_sermon()
        self._notify(FALLBACK_NOTICE)

        return replace(
            sample,
            title=f"{sample.title} - {capitalize_purpose(purpose)}",
            purpose=purpose,
            error_kind=error_kind,
        )

    def _notify(self, notification) -> None:
        try:
            self.notifier.notify(notification)
        except Exception as e:
            logger.warning(f"Notifier failed to deliver '{notification.title}': {e}")


def generate_khutba(purpose: str, cancel_token: CancelToken | None = None,
                    config: dict[str, Any] | None = None) -> Sermon:
    """Generate one sermon with a short-lived client."""
    with KhutbaClient(config) as client:
        return client.generate(purpose, cancel_token)
