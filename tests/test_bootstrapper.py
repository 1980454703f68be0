import logging

import pytest
from pymongo.errors import AutoReconnect, OperationFailure

from mongo_rs.bootstrapper import ReplicaSetBootstrapper
from mongo_rs.errors import ConvergenceTimeoutError, NotInitializedError, UnreachableError
from mongo_rs.models import BootstrapSettings

from conftest import HOSTS, make_status


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class FakeEndpoint:
    """Replays ``feed`` on each status call, repeating the last entry."""

    def __init__(self, feed, initiate_error=None, ping_failures=0):
        self.feed = list(feed)
        self.initiate_error = initiate_error
        self.ping_failures = ping_failures
        self.pings = 0
        self.status_calls = 0
        self.initiate_calls = []

    def ping(self):
        self.pings += 1
        if self.pings <= self.ping_failures:
            raise AutoReconnect("connection refused")

    def get_replica_set_status(self):
        item = self.feed[min(self.status_calls, len(self.feed) - 1)]
        self.status_calls += 1
        if isinstance(item, Exception):
            raise item
        return item

    def initiate_replica_set(self, spec):
        self.initiate_calls.append(spec.to_document())
        if self.initiate_error is not None:
            raise self.initiate_error
        return {"ok": 1}


HEALTHY = make_status(["PRIMARY", "SECONDARY", "SECONDARY"])
STARTING = make_status(["STARTUP2", "STARTUP", "STARTUP"], [1, 1, 1])


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def settings():
    return BootstrapSettings(poll_interval=1, max_attempts=5, connect_timeout=3)


def run(endpoint, spec, settings, clock):
    return ReplicaSetBootstrapper(endpoint, sleep=clock.sleep, clock=clock).ensure_ready(spec, settings)


def events(caplog):
    return [getattr(r, "event", None) for r in caplog.records if getattr(r, "event", None)]


def test_fresh_cluster_initiates_once_and_becomes_ready(spec, settings, clock, caplog):
    caplog.set_level(logging.DEBUG, logger="mongo_rs")
    endpoint = FakeEndpoint([NotInitializedError("no config"), STARTING, HEALTHY])

    summary = run(endpoint, spec, settings, clock)

    assert len(endpoint.initiate_calls) == 1
    assert endpoint.initiate_calls[0]["_id"] == "rs0"
    assert [m["priority"] for m in endpoint.initiate_calls[0]["members"]] == [2, 1, 1]
    assert summary.primary_host == HOSTS[0]
    assert summary.elapsed_polls == 2
    assert summary.member_states[HOSTS[1]] == "SECONDARY"
    assert "initiate.sent" in events(caplog)
    assert events(caplog)[-1] == "ready"


def test_already_ready_cluster_is_a_noop(spec, settings, clock):
    endpoint = FakeEndpoint([HEALTHY])
    bootstrapper = ReplicaSetBootstrapper(endpoint, sleep=clock.sleep, clock=clock)

    first = bootstrapper.ensure_ready(spec, settings)
    second = bootstrapper.ensure_ready(spec, settings)

    assert endpoint.initiate_calls == []
    assert first.elapsed_polls == 0
    assert second.elapsed_polls == 0
    assert second.primary_host == HOSTS[0]
    assert endpoint.status_calls == 2
    assert clock.sleeps == []


def test_matching_but_electing_cluster_waits_without_initiate(spec, settings, clock):
    electing = make_status(["SECONDARY", "SECONDARY", "SECONDARY"])
    endpoint = FakeEndpoint([electing, electing, HEALTHY])

    summary = run(endpoint, spec, settings, clock)

    assert endpoint.initiate_calls == []
    assert summary.elapsed_polls == 2


def test_not_initialized_with_failing_initiate_times_out(spec, settings, clock):
    endpoint = FakeEndpoint(
        [NotInitializedError("no config")],
        initiate_error=OperationFailure("already initializing", code=23),
    )

    with pytest.raises(ConvergenceTimeoutError) as excinfo:
        run(endpoint, spec, settings, clock)

    assert excinfo.value.attempts == settings.max_attempts
    assert excinfo.value.last_status is None
    assert excinfo.value.exit_code == 2
    # One detect read plus one read per converge poll
    assert endpoint.status_calls == 1 + settings.max_attempts
    assert len(endpoint.initiate_calls) == 1
    assert len(clock.sleeps) == settings.max_attempts - 1


def test_healthy_secondaries_without_primary_never_converge(spec, settings, clock):
    no_primary = make_status(["SECONDARY", "SECONDARY", "SECONDARY"])
    endpoint = FakeEndpoint([no_primary])

    with pytest.raises(ConvergenceTimeoutError) as excinfo:
        run(endpoint, spec, settings, clock)

    assert excinfo.value.last_status is no_primary
    assert not excinfo.value.last_status.primary_present()


def test_transient_errors_do_not_abort(spec, settings, clock, caplog):
    caplog.set_level(logging.DEBUG, logger="mongo_rs")
    flaky = AutoReconnect("election in progress")
    endpoint = FakeEndpoint([flaky, flaky, flaky, HEALTHY])

    summary = run(endpoint, spec, settings, clock)

    assert summary.elapsed_polls >= 3
    assert endpoint.initiate_calls == []
    assert "detect.error" in events(caplog)
    assert events(caplog).count("converge.error") == 2


def test_initiate_happens_during_converge_when_detect_was_inconclusive(spec, settings, clock):
    endpoint = FakeEndpoint([
        AutoReconnect("reset"),
        NotInitializedError("no config"),
        NotInitializedError("no config"),
        HEALTHY,
    ])

    summary = run(endpoint, spec, settings, clock)

    assert len(endpoint.initiate_calls) == 1
    assert summary.elapsed_polls == 3


def test_initiate_failure_is_logged_not_raised(spec, settings, clock, caplog):
    caplog.set_level(logging.DEBUG, logger="mongo_rs")
    endpoint = FakeEndpoint(
        [NotInitializedError("no config"), HEALTHY],
        initiate_error=OperationFailure("bad config", code=93),
    )

    summary = run(endpoint, spec, settings, clock)

    failed = [r for r in caplog.records if getattr(r, "event", None) == "initiate.failed"]
    assert failed and failed[0].levelno == logging.WARNING
    assert failed[0].fields["code"] == 93
    assert summary.primary_host == HOSTS[0]


def test_already_initialized_initiate_is_benign(spec, settings, clock, caplog):
    caplog.set_level(logging.DEBUG, logger="mongo_rs")
    endpoint = FakeEndpoint(
        [NotInitializedError("no config"), HEALTHY],
        initiate_error=OperationFailure("already initialized", code=23),
    )

    run(endpoint, spec, settings, clock)

    failed = [r for r in caplog.records if getattr(r, "event", None) == "initiate.failed"]
    assert failed[0].levelno == logging.INFO


def test_superset_membership_warns_and_converges(spec, settings, clock, caplog):
    caplog.set_level(logging.DEBUG, logger="mongo_rs")
    extra = make_status(
        ["PRIMARY", "SECONDARY", "SECONDARY", "SECONDARY"],
        hosts=HOSTS + ["mongo-extra:27017"],
    )
    endpoint = FakeEndpoint([extra])

    summary = run(endpoint, spec, settings, clock)

    assert "detect.mismatch" in events(caplog)
    assert endpoint.initiate_calls == []
    assert summary.elapsed_polls == 1
    assert "mongo-extra:27017" in summary.member_states


def test_missing_member_times_out(spec, settings, clock):
    partial = make_status(["PRIMARY", "SECONDARY"])
    endpoint = FakeEndpoint([partial])

    with pytest.raises(ConvergenceTimeoutError):
        run(endpoint, spec, settings, clock)
    assert endpoint.initiate_calls == []


@pytest.mark.parametrize("healths, ready", [
    ([1, 0, 0], False),
    ([1, 1, 0], True),
])
def test_majority_threshold(spec, settings, clock, healths, ready):
    status = make_status(["PRIMARY", "SECONDARY", "UNKNOWN"], healths)
    endpoint = FakeEndpoint([status])

    if ready:
        assert run(endpoint, spec, settings, clock).primary_host == HOSTS[0]
    else:
        with pytest.raises(ConvergenceTimeoutError):
            run(endpoint, spec, settings, clock)


def test_probe_retries_until_ping_answers(spec, settings, clock, caplog):
    caplog.set_level(logging.DEBUG, logger="mongo_rs")
    endpoint = FakeEndpoint([HEALTHY], ping_failures=2)

    run(endpoint, spec, settings, clock)

    assert endpoint.pings == 3
    assert events(caplog).count("probe.retry") == 2


def test_unreachable_endpoint_raises(spec, settings, clock):
    endpoint = FakeEndpoint([HEALTHY], ping_failures=1000)

    with pytest.raises(UnreachableError) as excinfo:
        run(endpoint, spec, settings, clock)

    assert excinfo.value.exit_code == 1
    assert endpoint.status_calls == 0
    assert clock.now >= settings.connect_timeout
