from __future__ import annotations

import argparse
import json
import logging
from typing import List, Optional, Tuple

from rich.console import Console
from rich.table import Table

from valhalla_client.client import ValhallaClient
from valhalla_client.config import ClientSettings
from valhalla_client.core.models import LocateRequest, RouteRequest, StatusRequest, locations_from_pairs
from valhalla_client.errors import ValhallaError


def _lat_lon(text: str) -> Tuple[float, float]:
    try:
        lat, lon = (float(p) for p in text.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected LAT,LON, got '{text}'")
    return lat, lon


def _fmt(v) -> str:
    return "" if v is None else str(v)


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="valhalla-client")
    ap.add_argument("--base-url", help="Valhalla server, e.g. https://valhalla.example.com")
    ap.add_argument("--timeout", type=float, help="Per-call deadline in seconds")
    ap.add_argument("--debug", action="store_true", help="Verbose logging and raw JSON output")
    sub = ap.add_subparsers(dest="command", required=True)

    st = sub.add_parser("status", help="Server health and version")
    st.add_argument("--verbose", action="store_true")

    lo = sub.add_parser("locate", help="Nearest roads for one or more points")
    lo.add_argument("points", nargs="+", type=_lat_lon, metavar="LAT,LON")
    lo.add_argument("--costing", default="auto")

    rt = sub.add_parser("route", help="Route through two or more points")
    rt.add_argument("points", nargs="+", type=_lat_lon, metavar="LAT,LON")
    rt.add_argument("--costing", default="auto")
    rt.add_argument("--units", default="kilometers")
    rt.add_argument("--alternates", type=int)
    return ap


def _settings(args: argparse.Namespace) -> ClientSettings:
    overrides = {}
    if args.base_url:
        overrides["base_url"] = args.base_url
    if args.timeout is not None:
        overrides["timeout_s"] = args.timeout
    return ClientSettings(**overrides)


def _show_status(console: Console, client: ValhallaClient, args: argparse.Namespace) -> None:
    resp = client.status(StatusRequest(verbose=args.verbose))
    table = Table(title=f"Valhalla status: {client.settings.base_url}")
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("version", _fmt(resp.version))
    table.add_row("tileset_last_modified", _fmt(resp.tileset_last_modified))
    table.add_row("has_tiles", _fmt(resp.has_tiles))
    table.add_row("has_admins", _fmt(resp.has_admins))
    table.add_row("has_timezones", _fmt(resp.has_timezones))
    table.add_row("has_live_traffic", _fmt(resp.has_live_traffic))
    console.print(table)
    if args.debug:
        console.print_json(json.dumps(resp.raw))


def _show_locate(console: Console, client: ValhallaClient, args: argparse.Namespace) -> None:
    resp = client.locate(LocateRequest(locations=locations_from_pairs(args.points), costing=args.costing))
    table = Table(title="Locate")
    table.add_column("Input")
    table.add_column("Edges")
    table.add_column("Nodes")
    table.add_column("Nearest way")
    table.add_column("Dist m")
    for r in resp.results:
        nearest = (r.edges or [None])[0]
        table.add_row(
            f"{_fmt(r.input_lat)},{_fmt(r.input_lon)}",
            str(len(r.edges or [])),
            str(len(r.nodes or [])),
            _fmt(nearest.way_id) if nearest else "",
            f"{nearest.distance:.1f}" if nearest and nearest.distance is not None else "",
        )
    console.print(table)
    if args.debug:
        console.print_json(json.dumps(resp.raw))


def _show_route(console: Console, client: ValhallaClient, args: argparse.Namespace) -> None:
    resp = client.route(
        RouteRequest(
            locations=locations_from_pairs(args.points),
            costing=args.costing,
            units=args.units,
            alternates=args.alternates,
        )
    )
    table = Table(title=f"Route ({args.costing})")
    table.add_column("Trip")
    table.add_column("Legs")
    table.add_column(f"Length ({args.units})")
    table.add_column("Time min")
    table.add_column("Shape pts")
    for i, trip in enumerate(resp.trips):
        legs = trip.legs or []
        summary = trip.summary
        table.add_row(
            "primary" if i == 0 else f"alt {i}",
            str(len(legs)),
            f"{summary.length:.2f}" if summary and summary.length is not None else "",
            f"{summary.time / 60:.1f}" if summary and summary.time is not None else "",
            str(sum(len(leg.coordinates()) for leg in legs)),
        )
    console.print(table)

    if args.debug:
        for leg in resp.trip.legs or []:
            for m in leg.maneuvers or []:
                console.print(f"  {_fmt(m.instruction)}")


def main(argv: Optional[List[str]] = None) -> None:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.debug else logging.WARNING)

    console = Console()
    handlers = {"status": _show_status, "locate": _show_locate, "route": _show_route}

    try:
        with ValhallaClient(settings=_settings(args)) as client:
            handlers[args.command](console, client, args)
    except ValhallaError as e:
        console.print(f"[red]{type(e).__name__}:[/red] {e}")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
