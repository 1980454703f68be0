#!/usr/bin/env python3
import argparse
import logging
import sys
from dataclasses import dataclass

from pymongo import ASCENDING
from pymongo.database import Database
from pymongo.errors import PyMongoError

from mongo_rs.config import credentials_from, database_name, load_config
from mongo_rs.endpoint import connect_primary
from mongo_rs.errors import BootstrapError
from mongo_rs.logging_config import log_event, setup_logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TTLIndex:
    collection: str
    field: str
    expire_after_seconds: int
    name: str


TTL_INDEXES = (
    # Expire as soon as expiresAt is reached
    TTLIndex("sessions", "expiresAt", 0, "ttl_expiresAt_index"),
    TTLIndex("user_tokens", "createdAt", 60, "ttl_user_tokens_index"),
)


def create_ttl_indexes(db: Database, indexes=TTL_INDEXES) -> list:
    names = []
    for idx in indexes:
        name = db[idx.collection].create_index(
            [(idx.field, ASCENDING)],
            expireAfterSeconds=idx.expire_after_seconds,
            name=idx.name,
        )
        log_event(logger, logging.INFO, "ttl.index_created",
                  f"TTL index {idx.collection}.{name} on {idx.field} ({idx.expire_after_seconds}s)",
                  collection=idx.collection, index=name)
        names.append(name)
    return names


def list_ttl_indexes(db: Database, collections=None) -> dict:
    """Map collection name to ``{index_name: (key, expireAfterSeconds)}`` for TTL indexes only."""
    if collections is None:
        collections = sorted({idx.collection for idx in TTL_INDEXES})
    result = {}
    for coll in collections:
        result[coll] = {
            name: (info.get("key"), info["expireAfterSeconds"])
            for name, info in db[coll].index_information().items()
            if "expireAfterSeconds" in info
        }
    return result


def print_ttl_indexes(db: Database) -> None:
    print("TTL indexes:")
    for coll, indexes in list_ttl_indexes(db).items():
        print(f"{coll}:")
        for name, (key, seconds) in indexes.items():
            print(f"  - {name}: expires after {seconds} seconds (key={key})")


def main(argv=None):
    p = argparse.ArgumentParser(description="Create the TTL indexes used by the expiration demo")
    p.add_argument("--config", help="Path to mongo_servers.yml")
    p.add_argument("--db", help="Target database (default from config or MONGO_DB)")
    p.add_argument("--log-level", default="INFO")
    args = p.parse_args(argv)
    setup_logging(args.log_level)

    try:
        cfg = load_config(args.config)
        with connect_primary(cfg["servers"], credentials_from(cfg)) as client:
            db = client[args.db or database_name(cfg)]
            create_ttl_indexes(db)
            print_ttl_indexes(db)
    except BootstrapError as e:
        print(f"Error: {e}")
        return e.exit_code
    except (PyMongoError, ConnectionError) as e:
        print(f"Error setting up TTL indexes: {e}")
        return 1
    print("TTL indexes setup completed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
