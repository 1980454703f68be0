#!/usr/bin/env python3
import argparse
import sys

from pymongo.errors import PyMongoError

from mongo_rs.bootstrapper import ReplicaSetBootstrapper
from mongo_rs.config import build_settings, build_spec, credentials_from, database_name, load_config
from mongo_rs.endpoint import MongoEndpoint, connect, connect_primary
from mongo_rs.errors import BootstrapError
from mongo_rs.logging_config import setup_logging
from mongo_rs.seed_sample_data import seed_sample_data, seed_ttl_data
from mongo_rs.setup_ttl_indexes import create_ttl_indexes


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Initialize the replica set and wait until it has a PRIMARY")
    p.add_argument("--config", help="Path to mongo_servers.yml")
    p.add_argument("--poll-interval", type=float, help="Seconds between status polls")
    p.add_argument("--max-attempts", type=int, help="Status polls before giving up")
    p.add_argument("--connect-timeout", type=float, help="Seconds to wait for the first ping")
    p.add_argument("--with-ttl", action="store_true", help="Create TTL indexes once ready")
    p.add_argument("--with-sample-data", action="store_true", help="Insert sample data once ready")
    p.add_argument("--log-level", default="INFO")
    p.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    return p.parse_args(argv)


def bootstrap(cfg, settings):
    spec = build_spec(cfg)
    first = cfg["servers"][0]
    uri = credentials_from(cfg).uri(first["host"], first.get("port", 27017))
    # Talk to the first node directly; the set may not exist yet
    with connect(uri) as client:
        return ReplicaSetBootstrapper(MongoEndpoint(client)).ensure_ready(spec, settings)


def post_ready(cfg, with_ttl, with_sample_data):
    with connect_primary(cfg["servers"], credentials_from(cfg)) as client:
        db = client[database_name(cfg)]
        if with_ttl:
            create_ttl_indexes(db)
        if with_sample_data:
            seed_sample_data(db)
            if with_ttl:
                seed_ttl_data(db)


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.log_level, json_output=args.json_logs)

    try:
        cfg = load_config(args.config)
        settings = build_settings(
            cfg,
            poll_interval=args.poll_interval,
            max_attempts=args.max_attempts,
            connect_timeout=args.connect_timeout,
        )
        summary = bootstrap(cfg, settings)
        print(f"PRIMARY: {summary.primary_host}")
        for host, state in summary.member_states.items():
            print(f"  {host:<25} {state}")
        if args.with_ttl or args.with_sample_data:
            post_ready(cfg, args.with_ttl, args.with_sample_data)
    except BootstrapError as e:
        print(f"Error: {e}")
        return e.exit_code
    except (PyMongoError, ConnectionError) as e:
        print(f"Error after bootstrap: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
