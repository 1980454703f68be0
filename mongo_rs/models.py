from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from mongo_rs.errors import ConfigError


class MemberState(str, Enum):
    PRIMARY = "PRIMARY"
    SECONDARY = "SECONDARY"
    STARTUP = "STARTUP"
    RECOVERING = "RECOVERING"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_state_str(cls, state_str):
        if state_str in ("PRIMARY", "SECONDARY"):
            return cls(state_str)
        if state_str in ("STARTUP", "STARTUP2"):
            return cls.STARTUP
        if state_str in ("RECOVERING", "ROLLBACK"):
            return cls.RECOVERING
        return cls.UNKNOWN


@dataclass(frozen=True)
class Member:
    host: str
    priority: float = 1


@dataclass(frozen=True)
class ReplicaSetSpec:
    name: str
    members: tuple
    version: int = 1

    def __post_init__(self):
        # Lists from YAML are frozen into tuples
        object.__setattr__(self, "members", tuple(self.members))
        self.validate()

    def validate(self):
        if not self.name:
            raise ConfigError("Replica set name must not be empty.")
        if self.version < 1:
            raise ConfigError(f"Replica set version must be >= 1, got {self.version}.")
        if not self.members:
            raise ConfigError("Replica set needs at least one member.")
        hosts = [m.host for m in self.members]
        if len(set(hosts)) != len(hosts):
            raise ConfigError(f"Duplicate member hosts in spec: {hosts}")
        if any(m.priority < 0 for m in self.members):
            raise ConfigError("Member priorities must be non-negative.")
        top = max(m.priority for m in self.members)
        if sum(1 for m in self.members if m.priority == top) != 1:
            raise ConfigError(f"Exactly one member must hold the highest priority ({top}).")

    @property
    def hosts(self):
        return [m.host for m in self.members]

    @property
    def majority(self) -> int:
        # ceil((n + 1) / 2)
        return (len(self.members) + 2) // 2

    def to_document(self) -> dict:
        """Config document accepted by replSetInitiate."""
        return {
            "_id": self.name,
            "version": self.version,
            "members": [
                {"_id": i, "host": m.host, "priority": m.priority}
                for i, m in enumerate(self.members)
            ],
        }


@dataclass(frozen=True)
class MemberStatus:
    host: str
    state: MemberState
    health: int
    optime_date: Optional[datetime] = None
    # syncSourceHost on 4.4+, syncingTo before
    syncing_to: str = ""


@dataclass(frozen=True)
class ReplicaSetStatus:
    set_name: str
    members: tuple = ()

    @classmethod
    def from_document(cls, doc: dict) -> "ReplicaSetStatus":
        members = tuple(
            MemberStatus(
                host=m.get("name"),
                state=MemberState.from_state_str(m.get("stateStr")),
                health=1 if m.get("health", 0) == 1 else 0,
                optime_date=m.get("optimeDate"),
                syncing_to=m.get("syncSourceHost") or m.get("syncingTo") or "",
            )
            for m in doc.get("members", [])
        )
        return cls(set_name=doc.get("set", ""), members=members)

    @property
    def hosts(self):
        return {m.host for m in self.members}

    @property
    def primary(self) -> Optional[MemberStatus]:
        return next((m for m in self.members if m.state is MemberState.PRIMARY), None)

    def primary_present(self) -> bool:
        return self.primary is not None

    def healthy_count(self, expected_hosts=None) -> int:
        members = self.members
        if expected_hosts is not None:
            expected = set(expected_hosts)
            members = [m for m in members if m.host in expected]
        return sum(1 for m in members if m.health == 1)

    def has_all_members(self, expected_hosts) -> bool:
        return set(expected_hosts) <= self.hosts

    def matches(self, spec: ReplicaSetSpec) -> bool:
        return len(self.members) == len(spec.members) and self.hosts == set(spec.hosts)

    def is_converged(self, spec: ReplicaSetSpec) -> bool:
        return (
            self.primary_present()
            and self.healthy_count(spec.hosts) >= spec.majority
            and self.has_all_members(spec.hosts)
        )

    def member_states(self) -> dict:
        return {m.host: m.state.value for m in self.members}


@dataclass(frozen=True)
class Summary:
    primary_host: str
    member_states: dict = field(default_factory=dict)
    elapsed_polls: int = 0


@dataclass(frozen=True)
class BootstrapSettings:
    poll_interval: float = 1.0
    max_attempts: int = 60
    connect_timeout: float = 60.0

    def __post_init__(self):
        if self.poll_interval <= 0:
            raise ConfigError(f"poll_interval must be > 0, got {self.poll_interval}.")
        if self.max_attempts < 1:
            raise ConfigError(f"max_attempts must be >= 1, got {self.max_attempts}.")
        if self.connect_timeout <= 0:
            raise ConfigError(f"connect_timeout must be > 0, got {self.connect_timeout}.")
