#!/usr/bin/env python3
import argparse
import logging
import sys
from datetime import datetime, timezone

from bson import json_util
from pymongo.errors import PyMongoError

from mongo_rs.config import credentials_from, database_name, load_config
from mongo_rs.endpoint import connect_primary
from mongo_rs.errors import BootstrapError
from mongo_rs.logging_config import log_event, setup_logging

logger = logging.getLogger(__name__)

DELETE_PIPELINE = [{"$match": {"operationType": "delete"}}]
SEPARATOR = "=" * 70

TTL_KINDS = {
    "sessions": "Session expiration (expiresAt field)",
    "user_tokens": "User token expiration (createdAt + 60 seconds)",
}

TTL_ID_LABELS = {"sessions": "Session ID", "user_tokens": "Token ID"}

TROUBLESHOOTING = """Troubleshooting:
1. Ensure MongoDB is running as a replica set
2. Check the TTL indexes exist: db.sessions.getIndexes()
3. Verify TTL sample data exists: db.sessions.find()
4. The TTL background task runs every 60 seconds"""

ABOUT_TTL = """About TTL and Change Streams:
- TTL indexes delete expired documents in a background task that runs every 60 seconds
- Documents may outlive their expiration time by up to one task interval
- Each TTL deletion reaches Change Streams as a 'delete' operation"""


def event_time(event) -> str:
    ts = event.get("clusterTime")
    if ts is None:
        return "unknown"
    return datetime.fromtimestamp(ts.time, tz=timezone.utc).isoformat()


def summarize(event, number: int) -> list:
    ns = event.get("ns", {})
    coll = ns.get("coll", "")
    lines = [
        f"TTL EXPIRATION EVENT #{number}",
        f"   Time: {event_time(event)}",
        f"   Database: {ns.get('db', '')}",
        f"   Collection: {coll}",
        f"   Operation: {event.get('operationType')}",
        f"   Document ID: {json_util.dumps(event.get('documentKey'))}",
        f"   TTL Type: {TTL_KINDS.get(coll, 'General TTL expiration or manual deletion')}",
    ]
    if coll in TTL_ID_LABELS:
        doc_id = (event.get("documentKey") or {}).get("_id")
        lines.append(f"   {TTL_ID_LABELS[coll]}: {doc_id if doc_id is not None else 'Unknown'}")
    return lines


def monitor(db, out=print, show_counts=True, verbose=False, stream=None, limit=None) -> int:
    """Print every delete event on ``db``; return how many were seen.

    Runs until the feed ends, ``limit`` events were printed, or the caller
    interrupts it.
    """
    count = 0
    stream = stream if stream is not None else db.watch(DELETE_PIPELINE, full_document="whenAvailable")
    with stream:
        log_event(logger, logging.INFO, "monitor.start", f"Watching {db.name} for delete events.")
        for event in stream:
            count += 1
            for line in summarize(event, count):
                out(line)
            if verbose:
                out(f"   Full Event Data: {json_util.dumps(event, indent=4)}")
            if show_counts:
                out(f"Current counts - Sessions: {db.sessions.count_documents({})}, "
                    f"Tokens: {db.user_tokens.count_documents({})}")
            out(SEPARATOR)
            if limit is not None and count >= limit:
                break
    return count


def main(argv=None):
    p = argparse.ArgumentParser(description="Print delete events (TTL expirations) from a change stream")
    p.add_argument("--config", help="Path to mongo_servers.yml")
    p.add_argument("--db", help="Database to watch (default from config or MONGO_DB)")
    p.add_argument("--no-counts", action="store_true", help="Skip collection counts after each event")
    p.add_argument("--verbose", action="store_true", help="Print the full change event")
    p.add_argument("--log-level", default="INFO")
    args = p.parse_args(argv)
    setup_logging(args.log_level)

    print("Starting TTL Change Stream Monitor (Ctrl+C to stop)")
    print(SEPARATOR)
    try:
        cfg = load_config(args.config)
        with connect_primary(cfg["servers"], credentials_from(cfg)) as client:
            db = client[args.db or database_name(cfg)]
            monitor(db, show_counts=not args.no_counts, verbose=args.verbose)
    except KeyboardInterrupt:
        print("\nChange Stream monitoring stopped by user")
        return 0
    except BootstrapError as e:
        print(f"Error: {e}")
        return e.exit_code
    except (PyMongoError, ConnectionError) as e:
        print(f"Error monitoring Change Stream: {e}")
        print(TROUBLESHOOTING)
        return 1
    finally:
        print()
        print(ABOUT_TTL)
    return 0


if __name__ == "__main__":
    sys.exit(main())
