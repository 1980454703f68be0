#!/usr/bin/env python3
import argparse
import sys

from pymongo.errors import PyMongoError

from mongo_rs.config import credentials_from, host_port, load_config
from mongo_rs.endpoint import MongoEndpoint, try_connect_nodes
from mongo_rs.errors import BootstrapError, NotInitializedError
from mongo_rs.models import MemberState, ReplicaSetStatus


def report(status: ReplicaSetStatus, queried_via: str, out=print) -> bool:
    """Print the status table and return whether every member is healthy."""
    out(f"Replica set: {status.set_name or '(unknown)'}  (queried via {queried_via})")
    primary = status.primary
    out(f"PRIMARY: {primary.host if primary else '(none yet)'}")
    out("-" * 60)
    healthy = primary is not None
    for m in status.members:
        health = "UP" if m.health == 1 else "DOWN"
        optime = m.optime_date.isoformat() if m.optime_date else ""
        out(f"{m.host:<25} state={m.state.value:<10} health={health:<4} optime={optime} syncingTo={m.syncing_to}")
        if m.state not in (MemberState.PRIMARY, MemberState.SECONDARY) or m.health != 1:
            healthy = False
    out("-" * 60)
    return healthy


def main(argv=None):
    p = argparse.ArgumentParser(description="Print replica set member states")
    p.add_argument("--config", help="Path to mongo_servers.yml")
    args = p.parse_args(argv)

    client = None
    try:
        cfg = load_config(args.config)
        client, node = try_connect_nodes(cfg["servers"], credentials_from(cfg))
        status = MongoEndpoint(client).get_replica_set_status()
        if not report(status, host_port(node)):
            print("Replica set is not fully healthy.")
            return 2
        print("Replica set looks healthy.")
        return 0
    except NotInitializedError:
        print("Replica set is not initialized.")
        return 2
    except BootstrapError as e:
        print(f"Error: {e}")
        return e.exit_code
    except (PyMongoError, ConnectionError) as e:
        print(f"Error getting status: {e}")
        return 1
    finally:
        if client is not None:
            client.close()


if __name__ == "__main__":
    sys.exit(main())
