"""HTTP exchange with the Valhalla service.

One POST per call: validate, encode, send with per-request headers,
stream the body under a byte ceiling, classify the status, decode.
The ``requests.Session`` may be shared with other code, so its default
headers and adapters are never touched.

The exchange itself runs on a helper thread while the calling thread
waits for it, the deadline, or the caller's cancellation signal. When the
deadline or the signal wins, the calling thread raises at once and the
in-flight response is shut down so a blocked read returns.
"""
from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

import requests
from pydantic import BaseModel
from urllib3.exceptions import HTTPError as Urllib3HTTPError
from urllib3.exceptions import ReadTimeoutError

from valhalla_client.config import ClientSettings
from valhalla_client.core.wire import ResponseShape, decode_json, encode_request, truncate_body
from valhalla_client.errors import (
    ConnectionFailedError,
    FormatError,
    RemoteError,
    RequestCancelledError,
    RequestTimeoutError,
    SizeLimitError,
    TransportError,
)

log = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json; charset=utf-8"

# threading.Event has no wait-for-either, so the caller's signal is sampled
# at this interval while the exchange is in flight
CANCEL_POLL_S = 0.05


def _is_read_timeout(exc: BaseException) -> bool:
    # requests wraps urllib3's ReadTimeoutError in ConnectionError
    return any(isinstance(a, ReadTimeoutError) for a in getattr(exc, "args", ()))


class _Abandoned(Exception):
    """The calling thread already gave up on this exchange."""


class _Exchange:
    """State shared between the calling thread and the helper thread."""

    def __init__(self) -> None:
        self.finished = threading.Event()
        self.aborted = threading.Event()
        self.result: Optional[Tuple[int, bytes]] = None
        self.error: Optional[BaseException] = None
        self._lock = threading.Lock()
        self._response: Optional[requests.Response] = None

    def attach(self, resp: requests.Response) -> bool:
        with self._lock:
            if self.aborted.is_set():
                return False
            self._response = resp
            return True

    def abort(self) -> None:
        with self._lock:
            self.aborted.set()
            resp = self._response
        if resp is None:
            return
        # shutdown() unblocks a read pending on the helper thread
        shutdown = getattr(resp.raw, "shutdown", None)
        try:
            if shutdown is not None:
                shutdown()
            else:
                resp.raw.close()
        except (OSError, ValueError, RuntimeError) as e:
            # the helper already finished with the connection
            log.debug("Response shutdown skipped: %s", e)


@dataclass
class HTTPClient:
    settings: ClientSettings
    session: requests.Session = field(default_factory=requests.Session)
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    # ------------------------------------------------------------------
    # Public
    # ------------------------------------------------------------------

    def send(
        self,
        endpoint: str,
        request: BaseModel,
        validate: Callable[[Any], None],
        shape: ResponseShape = ResponseShape.OBJECT,
        cancel: Optional[threading.Event] = None,
    ) -> Any:
        """Validate + encode ``request``, POST it, and return the decoded JSON root."""
        validate(request)
        body = encode_request(request)
        return self.post_json(endpoint, body, shape=shape, cancel=cancel)

    def post_json(
        self,
        endpoint: str,
        body: bytes,
        shape: ResponseShape = ResponseShape.OBJECT,
        cancel: Optional[threading.Event] = None,
    ) -> Any:
        raw = self.post_bytes(endpoint, body, cancel=cancel)
        try:
            return decode_json(raw, shape, raw_limit=self.settings.max_error_body_bytes)
        except FormatError as e:
            log.error(
                "Failed to deserialize response from %s: %s",
                endpoint,
                e,
                extra={"endpoint": endpoint},
            )
            raise

    def post_bytes(
        self,
        endpoint: str,
        body: bytes,
        cancel: Optional[threading.Event] = None,
    ) -> bytes:
        """POST ``body`` and return the raw 2xx response body.

        ``settings.timeout_s`` bounds the whole call, from dispatch to the
        last body byte.

        Raises:
            RequestCancelledError: ``cancel`` was set before the exchange finished
            RequestTimeoutError: ``settings.timeout_s`` elapsed first
            SizeLimitError: declared or streamed size above ``max_response_bytes``
            RemoteError: non-2xx status
            ConnectionFailedError: connect/DNS/reset failures
            FormatError: the body is compressed
        """
        if cancel is not None and cancel.is_set():
            raise RequestCancelledError(f"Request to {endpoint} was cancelled.", endpoint=endpoint)

        url = self.settings.endpoint_url(endpoint)
        started = self.clock()
        deadline = started + self.settings.timeout_s

        log.debug("Sending POST request to %s", endpoint, extra={"endpoint": endpoint, "url": url})
        if self.settings.enable_sensitive_logging:
            log.debug("Request body: %s", body.decode("utf-8", errors="replace"))

        exchange = _Exchange()
        worker = threading.Thread(
            target=self._run_exchange,
            args=(exchange, url, body, endpoint, cancel),
            name=f"valhalla-{endpoint}",
            daemon=True,
        )
        worker.start()
        self._supervise(exchange, endpoint, cancel, deadline)

        if exchange.error is not None:
            raise exchange.error
        status_code, payload = exchange.result
        elapsed_ms = int((self.clock() - started) * 1000)

        if self.settings.enable_sensitive_logging:
            text = truncate_body(payload, self.settings.max_error_body_bytes)
            if len(payload) > self.settings.max_error_body_bytes:
                text += "... (truncated)"
            log.debug("Response body: %s", text)

        if not 200 <= status_code < 300:
            raise self._remote_error(endpoint, status_code, payload)

        log.info(
            "Request to %s completed in %dms with status %d",
            endpoint,
            elapsed_ms,
            status_code,
            extra={"endpoint": endpoint, "elapsed_ms": elapsed_ms, "status_code": status_code},
        )
        return payload

    # ------------------------------------------------------------------
    # Calling thread
    # ------------------------------------------------------------------

    def _supervise(
        self,
        exchange: _Exchange,
        endpoint: str,
        cancel: Optional[threading.Event],
        deadline: float,
    ) -> None:
        """Return once the exchange finishes; raise as soon as the deadline
        passes or ``cancel`` is set, whichever comes first."""
        while True:
            remaining = deadline - self.clock()
            if remaining <= 0:
                break
            wait = remaining if cancel is None else min(remaining, CANCEL_POLL_S)
            if exchange.finished.wait(wait):
                return
            if cancel is not None and cancel.is_set():
                break

        if exchange.finished.is_set():
            return
        exchange.abort()
        raise self._aborted(endpoint, cancel)

    # ------------------------------------------------------------------
    # Helper thread
    # ------------------------------------------------------------------

    def _run_exchange(
        self,
        exchange: _Exchange,
        url: str,
        body: bytes,
        endpoint: str,
        cancel: Optional[threading.Event],
    ) -> None:
        try:
            exchange.result = self._exchange(exchange, url, body, endpoint, cancel)
        except _Abandoned:
            # the calling thread has already raised
            pass
        except Exception as e:
            exchange.error = e
        finally:
            exchange.finished.set()

    def _exchange(
        self,
        exchange: _Exchange,
        url: str,
        body: bytes,
        endpoint: str,
        cancel: Optional[threading.Event],
    ) -> Tuple[int, bytes]:
        timeout_s = self.settings.timeout_s
        try:
            resp = self.session.post(
                url,
                data=body,
                headers=self._headers(),
                timeout=(timeout_s, timeout_s),
                stream=True,
            )
        except requests.exceptions.RequestException as e:
            if exchange.aborted.is_set():
                raise _Abandoned() from e
            if (
                isinstance(e, requests.exceptions.Timeout)
                or (cancel is not None and cancel.is_set())
                or _is_read_timeout(e)
            ):
                raise self._aborted(endpoint, cancel, e)
            log.warning("Request to %s failed: %s", endpoint, e, extra={"endpoint": endpoint})
            raise ConnectionFailedError(f"Request to {endpoint} failed", cause=e, endpoint=endpoint)

        if not exchange.attach(resp):
            resp.close()
            raise _Abandoned()

        with resp:
            if cancel is not None and cancel.is_set():
                raise self._aborted(endpoint, cancel)
            payload = self._read_body(resp, exchange, endpoint, cancel)
            return resp.status_code, payload

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Content-Type": JSON_CONTENT_TYPE,
            # uncompressed, so the size ceiling counts bytes as they arrive
            "Accept-Encoding": "identity",
        }
        if self.settings.has_api_key:
            headers[self.settings.api_key_header_name] = self.settings.api_key_header_value.get_secret_value()
        return headers

    def _read_body(
        self,
        resp: requests.Response,
        exchange: _Exchange,
        endpoint: str,
        cancel: Optional[threading.Event],
    ) -> bytes:
        limit = self.settings.max_response_bytes

        declared = resp.headers.get("Content-Length")
        if declared is not None and declared.strip().isdigit() and int(declared) > limit:
            raise self._too_large(endpoint, resp.status_code, int(declared), declared=True)

        encoding = (resp.headers.get("Content-Encoding") or "identity").strip().lower()
        if encoding != "identity":
            log.warning(
                "Request to %s returned unsupported Content-Encoding %r",
                endpoint,
                encoding,
                extra={"endpoint": endpoint, "status_code": resp.status_code},
            )
            raise FormatError(
                f"Unsupported Content-Encoding '{encoding}'; only identity responses are accepted."
            )

        # Wire bytes straight from urllib3, never decoded characters.
        buf = bytearray()
        received = 0
        try:
            for chunk in resp.raw.stream(self.settings.chunk_size, decode_content=False):
                if exchange.aborted.is_set():
                    raise _Abandoned()
                if cancel is not None and cancel.is_set():
                    buf.clear()
                    raise self._aborted(endpoint, cancel)
                received += len(chunk)
                if received > limit:
                    buf.clear()
                    raise self._too_large(endpoint, resp.status_code, received, declared=False)
                buf += chunk
        except (TransportError, _Abandoned):
            raise
        except ReadTimeoutError as e:
            buf.clear()
            if exchange.aborted.is_set():
                raise _Abandoned() from e
            raise self._aborted(endpoint, cancel, e)
        except (Urllib3HTTPError, OSError) as e:
            buf.clear()
            if exchange.aborted.is_set():
                raise _Abandoned() from e
            log.error("Failed to read response body from %s: %s", endpoint, e, extra={"endpoint": endpoint})
            raise ConnectionFailedError(
                f"Failed to read response body from {endpoint}", cause=e, endpoint=endpoint
            )
        return bytes(buf)

    # ------------------------------------------------------------------
    # Error construction
    # ------------------------------------------------------------------

    def _aborted(
        self,
        endpoint: str,
        cancel: Optional[threading.Event],
        cause: Optional[BaseException] = None,
    ) -> TransportError:
        """Timeout and caller cancellation surface the same way underneath;
        whichever signal actually fired decides the error."""
        if cancel is not None and cancel.is_set():
            log.info("Request to %s was cancelled", endpoint, extra={"endpoint": endpoint})
            return RequestCancelledError(f"Request to {endpoint} was cancelled.", cause=cause, endpoint=endpoint)

        timeout_s = self.settings.timeout_s
        log.warning(
            "Request to %s timed out after %dms",
            endpoint,
            int(timeout_s * 1000),
            extra={"endpoint": endpoint, "timeout_ms": int(timeout_s * 1000)},
        )
        return RequestTimeoutError(
            f"Request to {endpoint} timed out after {timeout_s:g}s.",
            cause=cause,
            endpoint=endpoint,
            timeout_s=timeout_s,
        )

    def _too_large(self, endpoint: str, status_code: int, observed: int, declared: bool) -> SizeLimitError:
        limit = self.settings.max_response_bytes
        if declared:
            message = f"Response size ({observed} bytes) exceeds maximum allowed size ({limit} bytes)"
        else:
            message = f"Response size exceeds maximum allowed size ({limit} bytes)"
        log.warning(
            "Request to %s failed with status %d: %s",
            endpoint,
            status_code,
            message,
            extra={"endpoint": endpoint, "status_code": status_code},
        )
        return SizeLimitError(
            message,
            status_code=status_code,
            limit_bytes=limit,
            observed_bytes=observed,
        )

    def _remote_error(self, endpoint: str, status_code: int, payload: bytes) -> RemoteError:
        """Build a RemoteError from Valhalla's error envelope, best effort:
        ``{"error_code": 171, "error": "...", "status_code": 400, "status": "Bad Request"}``
        """
        error_code: Optional[int] = None
        http_status: Optional[str] = None
        message: Optional[str] = None

        try:
            doc = json.loads(payload)
        except (ValueError, UnicodeDecodeError):
            doc = None

        if isinstance(doc, dict):
            ec = doc.get("error_code")
            if isinstance(ec, int) and not isinstance(ec, bool):
                error_code = ec
            if isinstance(doc.get("error"), str):
                message = doc["error"]
            if isinstance(doc.get("status"), str):
                http_status = doc["status"]

        if not message:
            message = f"Request failed with status {status_code}"
        if status_code == 429:
            message = f"{message} (rate limited by the server; back off before retrying)"

        log.warning(
            "Request to %s failed with status %d: %s",
            endpoint,
            status_code,
            message,
            extra={"endpoint": endpoint, "status_code": status_code, "error_code": error_code},
        )
        return RemoteError(
            message,
            status_code=status_code,
            error_code=error_code,
            http_status=http_status,
            raw_response=truncate_body(payload, self.settings.max_error_body_bytes),
        )
