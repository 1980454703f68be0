import logging

import pytest

from mongo_rs.models import Member, ReplicaSetSpec, ReplicaSetStatus

HOSTS = ["mongo-primary:27017", "mongo-secondary-1:27017", "mongo-secondary-2:27017"]


def make_status(states, healths=None, hosts=None, set_name="rs0"):
    hosts = hosts or HOSTS[: len(states)]
    healths = healths or [1] * len(states)
    return ReplicaSetStatus.from_document({
        "set": set_name,
        "members": [
            {"name": h, "stateStr": s, "health": float(hl)}
            for h, s, hl in zip(hosts, states, healths)
        ],
    })


@pytest.fixture()
def spec():
    return ReplicaSetSpec(
        name="rs0",
        version=1,
        members=[Member(HOSTS[0], 2), Member(HOSTS[1], 1), Member(HOSTS[2], 1)],
    )


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("RS_NAME", "MONGO_ROOT_PASSWORD", "MONGO_DB", "MONGO_SERVERS_CONFIG",
                 "RS_POLL_INTERVAL", "RS_MAX_ATTEMPTS", "RS_CONNECT_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)


CONFIG_YAML = """
replica_set: rs0
version: 1
admin_user: root
admin_password: ""
database: exemplo
servers:
  - {host: localhost, port: 27017, rs_host: "mongo-primary:27017", priority: 2}
  - {host: localhost, port: 27018, rs_host: "mongo-secondary-1:27017", priority: 1}
  - {host: localhost, port: 27019, rs_host: "mongo-secondary-2:27017", priority: 1}
bootstrap:
  poll_interval: 0.5
  max_attempts: 10
  connect_timeout: 5
"""


@pytest.fixture()
def config_file(tmp_path):
    path = tmp_path / "mongo_servers.yml"
    path.write_text(CONFIG_YAML)
    return path


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger = logging.getLogger("mongo_rs")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
