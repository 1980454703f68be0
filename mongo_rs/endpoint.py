from contextlib import contextmanager

from pymongo import MongoClient
from pymongo.errors import OperationFailure, PyMongoError

from mongo_rs.config import Credentials, map_primary_to_hostport
from mongo_rs.errors import NotInitializedError
from mongo_rs.models import ReplicaSetSpec, ReplicaSetStatus

NOT_YET_INITIALIZED = 94
ALREADY_INITIALIZED = 23
SERVER_SELECTION_TIMEOUT_MS = 5000


@contextmanager
def connect(uri: str, timeout_ms: int = SERVER_SELECTION_TIMEOUT_MS):
    client = MongoClient(uri, serverSelectionTimeoutMS=timeout_ms)
    try:
        yield client
    finally:
        client.close()


class MongoEndpoint:
    """The three admin commands the bootstrapper needs, over one client."""

    def __init__(self, client: MongoClient):
        self.client = client

    def ping(self) -> None:
        self.client.admin.command("ping")

    def get_replica_set_status(self) -> ReplicaSetStatus:
        try:
            doc = self.client.admin.command("replSetGetStatus")
        except OperationFailure as e:
            if e.code == NOT_YET_INITIALIZED:
                raise NotInitializedError(str(e)) from e
            raise
        return ReplicaSetStatus.from_document(doc)

    def initiate_replica_set(self, spec: ReplicaSetSpec) -> dict:
        return self.client.admin.command("replSetInitiate", spec.to_document())


def try_connect_nodes(servers, credentials: Credentials):
    """Return a pinged client for the first reachable server, and that server."""
    last_err = None
    for s in servers:
        client = MongoClient(
            credentials.uri(s["host"], s.get("port", 27017)),
            serverSelectionTimeoutMS=SERVER_SELECTION_TIMEOUT_MS,
        )
        try:
            client.admin.command("ping")
            return client, s
        except PyMongoError as e:
            last_err = e
            client.close()
    raise ConnectionError(f"Unable to connect to any node directly. Last error: {last_err}")


@contextmanager
def connect_primary(servers, credentials: Credentials):
    """Yield a direct client to the current primary."""
    client, _ = try_connect_nodes(servers, credentials)
    try:
        hello = client.admin.command("hello")
        if not hello.get("isWritablePrimary"):
            primary = hello.get("primary")
            if not primary:
                raise ConnectionError("No primary found yet. Try again after election completes.")
            host, port = map_primary_to_hostport(primary, servers)
            client.close()
            client = MongoClient(
                credentials.uri(host, port),
                serverSelectionTimeoutMS=SERVER_SELECTION_TIMEOUT_MS,
            )
        yield client
    finally:
        client.close()
