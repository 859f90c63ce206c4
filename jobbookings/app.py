import argparse
import json
from pathlib import Path
from typing import Any, Dict, Optional

from . import __version__
from .client import BookingClient, BookingClientError
from .database import configure, init_database
from .dispatcher import dispatch
from .env import get_settings, load_env
from .logger import get_logger


def _parse_job(raw: str) -> Dict[str, Any]:
    """Job JSON from the command line, or from a file when prefixed with '@'."""
    if raw.startswith("@"):
        path = Path(raw[1:])
        if not path.exists():
            raise SystemExit(f"Job file not found: {path}")
        raw = path.read_text(encoding="utf-8")
    try:
        job = json.loads(raw)
    except json.JSONDecodeError as e:
        raise SystemExit(f"Invalid job JSON: {e}")
    if not isinstance(job, dict):
        raise SystemExit("Job must be a JSON object")
    return job


def _remote_call(client: BookingClient, method: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    if method == "list":
        return {"bookings": client.list()}
    if method == "add":
        return {"id": client.add(payload["date_key"], payload["job"], payload.get("id"))}
    if method == "update_by_index":
        client.update_by_index(payload["date_key"], payload["index"], payload["job"])
    elif method == "update_by_id":
        client.update_by_id(payload["id"], payload["job"], payload.get("date_key"))
    elif method == "delete_by_index":
        client.delete_by_index(payload["date_key"], payload["index"])
    elif method == "delete_by_id":
        client.delete_by_id(payload["id"])
    return {}


def call(args: argparse.Namespace, method: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Run one operation against the API (--url) or the database directly."""
    payload = payload or {}
    if args.url:
        try:
            return _remote_call(BookingClient(args.url), method, payload)
        except BookingClientError as e:
            raise SystemExit(f"{e.code}: {e.message}")

    configure(args.db)
    status, result = dispatch(method, payload)
    if not result["success"]:
        error = result["error"]
        raise SystemExit(f"{error['code']}: {error['message']}")
    return result


def cmd_init_db(args: argparse.Namespace) -> None:
    engine = init_database(args.db)
    print(f"Database ready: {engine.url.render_as_string(hide_password=True)}")


def cmd_serve(args: argparse.Namespace) -> None:
    from .api import run_api_server

    settings = args.settings
    settings.database_url = args.db
    if args.host:
        settings.api_host = args.host
    if args.port:
        settings.api_port = args.port
    run_api_server(settings)


def cmd_list(args: argparse.Namespace) -> None:
    bookings = call(args, "list").get("bookings", {})
    if not bookings:
        print("No bookings.")
        return
    for date_key, jobs in bookings.items():
        print(f"{date_key} ({len(jobs)}):")
        for index, job in enumerate(jobs):
            body = {k: v for k, v in job.items() if k != "id"}
            print(f"  [{index}] {job['id']}  {json.dumps(body, ensure_ascii=False)}")


def cmd_add(args: argparse.Namespace) -> None:
    payload = {"date_key": args.date, "job": _parse_job(args.job)}
    if args.id:
        payload["id"] = args.id
    result = call(args, "add", payload)
    print(f"Added: {result['id']}")


def cmd_update(args: argparse.Namespace) -> None:
    job = _parse_job(args.job)
    if args.index is not None:
        if not args.date:
            raise SystemExit("--date is required with --index")
        call(args, "update_by_index", {"date_key": args.date, "index": args.index, "job": job})
        print(f"Updated {args.date}[{args.index}]")
    else:
        call(args, "update_by_id", {"id": args.id, "job": job, "date_key": args.date})
        print(f"Updated {args.id}")


def cmd_delete(args: argparse.Namespace) -> None:
    if args.index is not None:
        if not args.date:
            raise SystemExit("--date is required with --index")
        call(args, "delete_by_index", {"date_key": args.date, "index": args.index})
        print(f"Deleted {args.date}[{args.index}]")
    else:
        call(args, "delete_by_id", {"id": args.id})
        print(f"Deleted {args.id}")


def cmd_export(args: argparse.Namespace) -> None:
    bookings = call(args, "list").get("bookings", {})
    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    with output.open("w", encoding="utf-8") as f:
        json.dump(bookings, f, indent=2, ensure_ascii=False)
    total = sum(len(jobs) for jobs in bookings.values())
    print(f"Exported {total} bookings on {len(bookings)} dates to {output}")


def cmd_import(args: argparse.Namespace) -> None:
    """Append every job of a {date_key: [job, ...]} dump, keeping embedded ids."""
    input_path = Path(args.input)
    if not input_path.exists():
        raise SystemExit(f"Input file not found: {input_path}")
    with input_path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise SystemExit("Import file must map date keys to lists of jobs")

    added = 0
    for date_key, jobs in data.items():
        if not isinstance(jobs, list):
            print(f"[skip] {date_key}: not a list")
            continue
        for job in jobs:
            call(args, "add", {"date_key": date_key, "job": job})
            added += 1
    print(f"Imported {added} bookings on {len(data)} dates")


def main():
    # Load .env if present (DATABASE_URL, JOBBOOKINGS_* settings)
    load_env()
    settings = get_settings()

    parser = argparse.ArgumentParser(prog="jobbookings", description="Jobs booked by date")
    parser.add_argument("--version", action="store_true", help="Show version")
    parser.add_argument("--db", default=settings.database_url, help="SQLAlchemy database URL (default: DATABASE_URL or sqlite:///data/bookings.db)")
    parser.add_argument("--url", default=settings.api_url, help="Use a running API instead of the database (or set JOBBOOKINGS_API_URL)")
    parser.add_argument("--log-level", default=settings.log_level, help="Console log level (default: INFO)")

    subparsers = parser.add_subparsers(dest="command")

    ini = subparsers.add_parser("init-db", help="Create the bookings table if missing")
    ini.set_defaults(func=cmd_init_db)

    srv = subparsers.add_parser("serve", help="Run the HTTP API")
    srv.add_argument("--host", help=f"Bind address (default: {settings.api_host})")
    srv.add_argument("--port", type=int, help=f"Port (default: {settings.api_port})")
    srv.set_defaults(func=cmd_serve)

    lst = subparsers.add_parser("list", help="List bookings grouped by date")
    lst.set_defaults(func=cmd_list)

    add = subparsers.add_parser("add", help="Append a job to a date")
    add.add_argument("--date", required=True, help="Date key, e.g. 2024-05-01")
    add.add_argument("--job", required=True, help="Job JSON object, or @path to a JSON file")
    add.add_argument("--id", help="Explicit booking id (default: generated)")
    add.set_defaults(func=cmd_add)

    upd = subparsers.add_parser("update", help="Replace a booked job by position or id")
    upd_target = upd.add_mutually_exclusive_group(required=True)
    upd_target.add_argument("--index", type=int, help="Zero-based position within --date")
    upd_target.add_argument("--id", help="Booking id")
    upd.add_argument("--date", help="Date key (required with --index)")
    upd.add_argument("--job", required=True, help="Job JSON object, or @path to a JSON file")
    upd.set_defaults(func=cmd_update)

    dele = subparsers.add_parser("delete", help="Remove a booked job by position or id")
    dele_target = dele.add_mutually_exclusive_group(required=True)
    dele_target.add_argument("--index", type=int, help="Zero-based position within --date")
    dele_target.add_argument("--id", help="Booking id")
    dele.add_argument("--date", help="Date key (required with --index)")
    dele.set_defaults(func=cmd_delete)

    exp = subparsers.add_parser("export", help="Write all bookings to a JSON file")
    exp.add_argument("--output", required=True, help="Destination JSON file")
    exp.set_defaults(func=cmd_export)

    imp = subparsers.add_parser("import", help="Append bookings from a JSON export")
    imp.add_argument("--input", required=True, help="JSON file mapping date keys to job lists")
    imp.set_defaults(func=cmd_import)

    args = parser.parse_args()
    args.settings = settings

    if args.version:
        print(__version__)
        return

    get_logger(level=args.log_level, log_dir=settings.log_dir)

    if hasattr(args, "func"):
        args.func(args)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
