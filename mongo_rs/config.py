import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import quote_plus

import yaml

from mongo_rs.errors import ConfigError
from mongo_rs.models import BootstrapSettings, Member, ReplicaSetSpec

CONFIG_FILE = Path(__file__).with_name("mongo_servers.yml")
DEFAULT_PORT = 27017


def load_config(path: Optional[Path] = None) -> dict:
    path = Path(path or os.environ.get("MONGO_SERVERS_CONFIG") or CONFIG_FILE)
    try:
        with path.open() as f:
            cfg = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(cfg, dict):
        raise ConfigError(f"Config file {path} must contain a mapping.")
    servers = cfg.get("servers")
    if not servers:
        raise ConfigError("No servers in config.")
    for s in servers:
        if not isinstance(s, dict) or not s.get("host"):
            raise ConfigError(f"Every server needs a host, got {s!r}.")
    return cfg


def host_port(server: dict) -> str:
    return f"{server['host']}:{server.get('port', DEFAULT_PORT)}"


def derive_rs_hosts(servers):
    return [s.get("rs_host") or host_port(s) for s in servers]


def map_primary_to_hostport(primary_name: str, servers):
    """Translate the member name reported by the set into a reachable host/port."""
    for s in servers:
        if s.get("rs_host") == primary_name:
            return s["host"], int(s.get("port", DEFAULT_PORT))
    host, _, port = primary_name.rpartition(":")
    if not host:
        return primary_name, DEFAULT_PORT
    return host, int(port)


@dataclass(frozen=True)
class Credentials:
    user: str = "root"
    password: Optional[str] = None

    def uri(self, host: str, port: int) -> str:
        auth = ""
        if self.password:
            auth = f"{quote_plus(self.user)}:{quote_plus(self.password)}@"
        return f"mongodb://{auth}{host}:{port}/admin?directConnection=true"


def credentials_from(cfg: dict) -> Credentials:
    return Credentials(
        user=cfg.get("admin_user") or "root",
        password=cfg.get("admin_password") or os.environ.get("MONGO_ROOT_PASSWORD") or None,
    )


def database_name(cfg: dict) -> str:
    return os.environ.get("MONGO_DB") or cfg.get("database") or "exemplo"


def build_spec(cfg: dict) -> ReplicaSetSpec:
    servers = cfg.get("servers", [])
    members = [
        Member(host=h, priority=_cast(s.get("priority", 1), "priority", float))
        for s, h in zip(servers, derive_rs_hosts(servers))
    ]
    return ReplicaSetSpec(
        name=os.environ.get("RS_NAME") or cfg.get("replica_set") or "rs0",
        version=_cast(cfg.get("version", 1), "version", int),
        members=members,
    )


def _cast(raw, key, cast):
    try:
        return cast(raw)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for {key}: {raw!r}") from e


def _setting(env_name, section, key, default, cast):
    raw = os.environ.get(env_name)
    if raw is None:
        raw = section.get(key, default)
    return _cast(raw, key, cast)


def build_settings(cfg: dict, **overrides) -> BootstrapSettings:
    section = cfg.get("bootstrap") or {}
    values = {
        "poll_interval": _setting("RS_POLL_INTERVAL", section, "poll_interval", 1.0, float),
        "max_attempts": _setting("RS_MAX_ATTEMPTS", section, "max_attempts", 60, int),
        "connect_timeout": _setting("RS_CONNECT_TIMEOUT", section, "connect_timeout", 60.0, float),
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    return BootstrapSettings(**values)
