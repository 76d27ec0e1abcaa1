"""Public entry point: one method per Valhalla endpoint.

    from valhalla_client.client import ValhallaClient
    from valhalla_client.core.models import Location, RouteRequest

    with ValhallaClient.from_url("https://valhalla.example.com") as client:
        resp = client.route(RouteRequest(
            locations=[Location(lat=47.61, lon=-122.33), Location(lat=47.66, lon=-122.30)],
            costing="auto",
        ))
        print(resp.trip.summary.length)

A client holds no per-call state, so one instance can serve many threads
(or tasks, through ``AsyncValhallaClient``) at once.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, Optional, TypeVar

import requests

from valhalla_client.config import ClientSettings, get_settings
from valhalla_client.core import validation
from valhalla_client.core.models import (
    LocateRequest,
    RouteRequest,
    StatusRequest,
    TraceAttributesRequest,
    TraceRouteRequest,
)
from valhalla_client.core.responses import (
    LocateResponse,
    RouteResponse,
    StatusResponse,
    TraceAttributesResponse,
    TraceRouteResponse,
)
from valhalla_client.core.wire import ResponseShape
from valhalla_client.errors import ValidationError
from valhalla_client.providers import reconstruct
from valhalla_client.providers.http import HTTPClient

log = logging.getLogger(__name__)

T = TypeVar("T")


def _require(request: Any, name: str) -> None:
    if request is None:
        raise ValidationError(f"{name} is required.", field="request")


class ValhallaClient:
    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.settings = settings or get_settings()
        # A caller-supplied session stays the caller's to close.
        self._owns_session = session is None
        self._http = HTTPClient(settings=self.settings, session=session or requests.Session())

        if self.settings.is_insecure_transport:
            log.warning(
                "API key is configured but base_url uses HTTP instead of HTTPS. "
                "Credentials may be transmitted insecurely."
            )

    @classmethod
    def from_url(
        cls,
        base_url: str,
        *,
        timeout_s: float = 15.0,
        api_key: Optional[str] = None,
        api_key_header: str = "X-Api-Key",
        enable_sensitive_logging: bool = False,
        session: Optional[requests.Session] = None,
    ) -> "ValhallaClient":
        settings = ClientSettings(
            base_url=base_url,
            timeout_s=timeout_s,
            api_key_header_name=api_key_header if api_key else None,
            api_key_header_value=api_key,
            enable_sensitive_logging=enable_sensitive_logging,
        )
        return cls(settings=settings, session=session)

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    def status(
        self,
        request: Optional[StatusRequest] = None,
        cancel: Optional[threading.Event] = None,
    ) -> StatusResponse:
        """Server health and version (``/status``)."""
        root = self._http.send(
            "status",
            request or StatusRequest(),
            validate=validation.validate_status_request,
            cancel=cancel,
        )
        return reconstruct.build_status(root)

    def locate(self, request: LocateRequest, cancel: Optional[threading.Event] = None) -> LocateResponse:
        """Nearest road edges/nodes for each location (``/locate``)."""
        _require(request, "LocateRequest")
        root = self._http.send(
            "locate",
            request,
            shape=ResponseShape.ARRAY,
            validate=validation.validate_locate_request,
            cancel=cancel,
        )
        return reconstruct.build_locate(root)

    def route(self, request: RouteRequest, cancel: Optional[threading.Event] = None) -> RouteResponse:
        """Turn-by-turn route; ``trips[0]`` is the primary, alternates follow."""
        _require(request, "RouteRequest")
        root = self._http.send(
            "route",
            request,
            validate=validation.validate_route_request,
            cancel=cancel,
        )
        return reconstruct.build_route(root)

    def trace_route(
        self,
        request: TraceRouteRequest,
        cancel: Optional[threading.Event] = None,
    ) -> TraceRouteResponse:
        """Map-match a GPS trace and return it as a route (``/trace_route``)."""
        _require(request, "TraceRouteRequest")
        root = self._http.send(
            "trace_route",
            request,
            validate=validation.validate_trace_request,
            cancel=cancel,
        )
        return reconstruct.build_trace_route(root)

    def trace_attributes(
        self,
        request: TraceAttributesRequest,
        cancel: Optional[threading.Event] = None,
    ) -> TraceAttributesResponse:
        """Map-match a GPS trace and return per-edge attributes (``/trace_attributes``)."""
        _require(request, "TraceAttributesRequest")
        root = self._http.send(
            "trace_attributes",
            request,
            validate=validation.validate_trace_request,
            cancel=cancel,
        )
        return reconstruct.build_trace_attributes(root)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        if self._owns_session:
            self._http.session.close()

    def __enter__(self) -> "ValhallaClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class AsyncValhallaClient:
    """Coroutine flavour of :class:`ValhallaClient`.

    Each call runs on a worker thread. Cancelling the awaiting task sets the
    call's cancellation event; the worker gives up on the exchange within
    ``CANCEL_POLL_S`` and shuts down the in-flight response. The task itself
    sees ``asyncio.CancelledError`` right away.
    """

    def __init__(self, client: Optional[ValhallaClient] = None, **kwargs: Any) -> None:
        self._client = client or ValhallaClient(**kwargs)

    @classmethod
    def from_url(cls, base_url: str, **kwargs: Any) -> "AsyncValhallaClient":
        return cls(ValhallaClient.from_url(base_url, **kwargs))

    async def _call(self, fn: Callable[[Any, threading.Event], T], request: Any) -> T:
        cancel = threading.Event()
        try:
            return await asyncio.to_thread(fn, request, cancel)
        except asyncio.CancelledError:
            cancel.set()
            raise

    async def status(self, request: Optional[StatusRequest] = None) -> StatusResponse:
        return await self._call(self._client.status, request)

    async def locate(self, request: LocateRequest) -> LocateResponse:
        return await self._call(self._client.locate, request)

    async def route(self, request: RouteRequest) -> RouteResponse:
        return await self._call(self._client.route, request)

    async def trace_route(self, request: TraceRouteRequest) -> TraceRouteResponse:
        return await self._call(self._client.trace_route, request)

    async def trace_attributes(self, request: TraceAttributesRequest) -> TraceAttributesResponse:
        return await self._call(self._client.trace_attributes, request)

    async def aclose(self) -> None:
        self._client.close()

    async def __aenter__(self) -> "AsyncValhallaClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
