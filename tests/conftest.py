"""Socket-free HTTP for tests: a fake transport adapter mounted on a real
``requests.Session``. Every prepared request is recorded so tests can
assert on headers, bodies and call counts."""
from __future__ import annotations

import json
import threading
from typing import Any, Callable, Iterable, List, Optional

import pytest
import requests
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict
from urllib3.exceptions import ProtocolError

from valhalla_client.config import ClientSettings


class FakeRaw:
    """Stands in for urllib3's response: yields the given chunks lazily and
    counts how many were pulled. After ``shutdown()`` the next read fails
    the way a shut socket does."""

    def __init__(self, chunks: Iterable[Any], on_chunk: Optional[Callable[[int], None]] = None):
        self._chunks = list(chunks)
        self._on_chunk = on_chunk
        self.chunks_read = 0
        self.closed = False
        self.shut = threading.Event()

    def stream(self, amt=None, decode_content=True):
        self.decode_content = decode_content
        for i, chunk in enumerate(self._chunks):
            if self._on_chunk is not None:
                self._on_chunk(i)
            if self.shut.is_set():
                raise ProtocolError("Connection broken: socket shut down")
            if isinstance(chunk, BaseException):
                raise chunk
            self.chunks_read += 1
            yield chunk

    def shutdown(self):
        self.shut.set()

    def close(self):
        self.closed = True


class FakeAdapter(BaseAdapter):
    def __init__(self):
        super().__init__()
        self.requests: List[requests.PreparedRequest] = []
        self.kwargs: List[dict] = []
        self._replies: List[Any] = []

    def reply(
        self,
        status: int = 200,
        body: Any = b"{}",
        headers: Optional[dict] = None,
        chunks: Optional[List[Any]] = None,
        on_chunk: Optional[Callable[[int], None]] = None,
        hold: Optional[threading.Event] = None,
    ) -> FakeRaw:
        """Queue a response. ``hold`` keeps the headers back until it is set."""
        if not isinstance(body, (bytes, bytearray)):
            body = json.dumps(body).encode("utf-8")
        raw = FakeRaw(chunks if chunks is not None else [bytes(body)], on_chunk=on_chunk)
        self._replies.append((status, headers or {}, raw, hold))
        return raw

    def fail(self, exc: BaseException, before: Optional[Callable[[], None]] = None) -> None:
        self._replies.append((exc, before))

    def send(self, request, **kwargs):
        self.requests.append(request)
        self.kwargs.append(kwargs)
        nxt = self._replies.pop(0)
        if isinstance(nxt[0], BaseException):
            exc, before = nxt
            if before is not None:
                before()
            raise exc
        status, headers, raw, hold = nxt
        if hold is not None:
            hold.wait(5)

        resp = requests.Response()
        resp.status_code = status
        resp.headers = CaseInsensitiveDict(headers)
        resp.raw = raw
        resp.request = request
        resp.url = request.url
        resp.encoding = "utf-8"
        return resp

    def close(self):
        pass

    def sent_json(self, i: int = -1) -> Any:
        return json.loads(self.requests[i].body)


@pytest.fixture
def adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def session(adapter: FakeAdapter) -> requests.Session:
    s = requests.Session()
    s.mount("http://", adapter)
    s.mount("https://", adapter)
    return s


@pytest.fixture
def settings() -> ClientSettings:
    return ClientSettings(base_url="https://valhalla.test/api/", timeout_s=5)


@pytest.fixture
def gate():
    """An Event released at teardown so held fake responses never outlive a test."""
    ev = threading.Event()
    yield ev
    ev.set()
