"""
Command-line entry point for the booking engine.

Usage:
    python main.py init-db
    python main.py services
    python main.py availability 2026-10-21 --service 3
    python main.py dates --service 3 --limit 3
    python main.py book --email jane@example.com --name "Jane Doe" --service 3 --start 2026-10-21T11:00
    python main.py bookings --email jane@example.com
    python main.py cancel BK-0123456789AB --email jane@example.com
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Optional

from booking_engine.handlers import BookingHandlers
from booking_engine.store.record_store import BookingRecordStore
from booking_engine.tools.job_sink import HttpJobSink, build_job_sink
from booking_engine.tools.services import get_all_services


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Check availability and book service appointments."
    )
    parser.add_argument(
        "--db",
        type=str,
        default=None,
        help="Path to the SQLite booking database (default: DATABASE_PATH).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging output.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create the booking tables if they don't exist.")
    sub.add_parser("services", help="List bookable service offerings.")

    availability = sub.add_parser("availability", help="Show slots for a date.")
    availability.add_argument("date", help="Business-local date, YYYY-MM-DD.")
    availability.add_argument("--service", required=True, help="Service offering id or slug.")
    availability.add_argument("--resource", default=None, help="Resource id (default: DEFAULT_RESOURCE_ID).")

    dates = sub.add_parser("dates", help="List the next dates with open slots.")
    dates.add_argument("--service", required=True, help="Service offering id or slug.")
    dates.add_argument("--resource", default=None, help="Resource id.")
    dates.add_argument("--limit", type=int, default=5, help="How many dates to return.")

    book = sub.add_parser("book", help="Book a slot.")
    book.add_argument("--email", required=True, help="Customer email.")
    book.add_argument("--name", required=True, help="Customer name.")
    book.add_argument("--service", required=True, help="Service offering id or slug.")
    book.add_argument("--start", required=True, help="Start time, ISO 8601 (naive = business time).")
    book.add_argument("--end", default=None, help="Optional end time; must match the service duration.")
    book.add_argument("--resource", default=None, help="Resource id.")
    book.add_argument("--phone", default=None, help="Customer phone number.")
    book.add_argument("--address", default=None, help="Service address.")
    book.add_argument("--notes", default=None, help="Free-text notes.")

    bookings = sub.add_parser("bookings", help="List a customer's bookings.")
    bookings.add_argument("--email", required=True, help="Customer email.")

    cancel = sub.add_parser("cancel", help="Cancel a booking you own.")
    cancel.add_argument("booking_id", help="Booking reference, e.g. BK-0123456789AB.")
    cancel.add_argument("--email", required=True, help="Email of the booking's owner.")
    return parser


async def _dispatch(args: argparse.Namespace, store: BookingRecordStore) -> dict[str, Any]:
    job_sink = build_job_sink()
    handlers = BookingHandlers(store, job_sink=job_sink)
    try:
        if args.command == "availability":
            return await handlers.query_availability({
                "date": args.date, "service_offering_id": args.service, "resource_id": args.resource,
            })
        if args.command == "dates":
            return await handlers.available_dates({
                "service_offering_id": args.service, "resource_id": args.resource, "limit": args.limit,
            })
        if args.command == "book":
            return await handlers.create_booking({
                "customer_email": args.email,
                "customer_name": args.name,
                "customer_phone": args.phone,
                "service_offering_id": args.service,
                "start": args.start,
                "end": args.end,
                "resource_id": args.resource,
                "address": args.address,
                "notes": args.notes,
            })
        if args.command == "bookings":
            return await handlers.customer_bookings({"customer_email": args.email})
        return await handlers.cancel_booking({"booking_id": args.booking_id, "customer_email": args.email})
    finally:
        if isinstance(job_sink, HttpJobSink):
            await job_sink.aclose()


def main(argv: Optional[list[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    store = BookingRecordStore(db_path=args.db)

    if args.command == "init-db":
        store.init_schema()
        result: dict[str, Any] = {"status": "SUCCESS", "database": store.db_path}
    elif args.command == "services":
        result = {"services": [offering.model_dump() for offering in get_all_services()]}
    else:
        result = asyncio.run(_dispatch(args, store))

    sys.stdout.write(json.dumps(result, indent=2, default=str) + "\n")
    return 1 if result.get("status") == "ERROR" else 0


if __name__ == "__main__":
    sys.exit(main())
