"""
Idempotent replica set bootstrap.

The bootstrapper walks a small state machine against a database endpoint:

    PROBE -> DETECT -> (initiate once) -> CONVERGE -> READY

Status is re-read on every poll and never cached, so other actors may change
the set concurrently. ``replSetInitiate`` is issued at most once per call to
:meth:`ReplicaSetBootstrapper.ensure_ready`, and a live configuration is never
reconfigured.
"""

import logging
import time

from mongo_rs.endpoint import ALREADY_INITIALIZED
from mongo_rs.errors import ConvergenceTimeoutError, NotInitializedError, UnreachableError
from mongo_rs.logging_config import log_event
from mongo_rs.models import BootstrapSettings, ReplicaSetSpec, ReplicaSetStatus, Summary

logger = logging.getLogger(__name__)


class ReplicaSetBootstrapper:
    def __init__(self, endpoint, sleep=time.sleep, clock=time.monotonic):
        self.endpoint = endpoint
        self.sleep = sleep
        self.clock = clock
        self.initiate_attempted = False

    def ensure_ready(self, spec: ReplicaSetSpec, settings: BootstrapSettings) -> Summary:
        self.initiate_attempted = False
        self.probe(settings)

        status = self.detect(spec)
        if status is not None and status.matches(spec) and status.is_converged(spec):
            log_event(logger, logging.INFO, "detect.already_ready",
                      f"Replica set '{spec.name}' already initialized and healthy.",
                      primary=status.primary.host)
            return self._ready(status, 0)

        return self.converge(spec, settings)

    def probe(self, settings: BootstrapSettings) -> None:
        deadline = self.clock() + settings.connect_timeout
        attempt = 0
        log_event(logger, logging.INFO, "probe.start", "Waiting for MongoDB to answer ping...")
        while True:
            attempt += 1
            try:
                self.endpoint.ping()
                log_event(logger, logging.INFO, "probe.ok", "MongoDB is reachable.", attempts=attempt)
                return
            except Exception as e:
                if self.clock() >= deadline:
                    log_event(logger, logging.ERROR, "probe.unreachable",
                              f"MongoDB unreachable after {settings.connect_timeout}s: {e}",
                              attempts=attempt)
                    raise UnreachableError(
                        f"MongoDB not reachable after {settings.connect_timeout}s. Last error: {e}"
                    ) from e
                log_event(logger, logging.DEBUG, "probe.retry", f"Ping failed: {e}", attempt=attempt)
            self.sleep(settings.poll_interval)

    def detect(self, spec: ReplicaSetSpec):
        """Read the current status once, initiating when the set has no config yet."""
        try:
            status = self.endpoint.get_replica_set_status()
        except NotInitializedError:
            log_event(logger, logging.INFO, "detect.not_initialized",
                      f"Replica set '{spec.name}' not initialized.")
            self.initiate(spec)
            return None
        except Exception as e:
            log_event(logger, logging.WARNING, "detect.error",
                      f"Could not read replica set status: {e}")
            return None

        if not status.matches(spec):
            log_event(logger, logging.WARNING, "detect.mismatch",
                      "Live membership differs from the requested configuration; leaving it unchanged.",
                      expected=sorted(spec.hosts), actual=sorted(status.hosts))
        return status

    def initiate(self, spec: ReplicaSetSpec) -> None:
        if self.initiate_attempted:
            return
        self.initiate_attempted = True
        log_event(logger, logging.INFO, "initiate.sent",
                  f"Initializing replica set '{spec.name}'.", config=spec.to_document())
        try:
            self.endpoint.initiate_replica_set(spec)
        except Exception as e:
            level = logging.INFO if getattr(e, "code", None) == ALREADY_INITIALIZED else logging.WARNING
            log_event(logger, level, "initiate.failed",
                      f"replSetInitiate did not succeed ({e}); polling for the real outcome.",
                      code=getattr(e, "code", None))
            return
        log_event(logger, logging.INFO, "initiate.ok", "replSetInitiate accepted; waiting for PRIMARY election...")

    def converge(self, spec: ReplicaSetSpec, settings: BootstrapSettings) -> Summary:
        last_status = None
        for attempt in range(1, settings.max_attempts + 1):
            try:
                status = self.endpoint.get_replica_set_status()
            except NotInitializedError as e:
                log_event(logger, logging.WARNING, "converge.error",
                          f"Replica set not initialized yet: {e}", attempt=attempt)
                self.initiate(spec)
            except Exception as e:
                log_event(logger, logging.WARNING, "converge.error",
                          f"Status poll failed: {e}", attempt=attempt)
            else:
                last_status = status
                converged = status.is_converged(spec)
                log_event(logger, logging.DEBUG, "converge.poll", f"Poll {attempt}/{settings.max_attempts}",
                          attempt=attempt, primary=status.primary_present(),
                          healthy=status.healthy_count(spec.hosts), majority=spec.majority)
                if converged:
                    return self._ready(status, attempt)
                log_event(logger, logging.INFO, "converge.waiting", "Waiting for quorum and PRIMARY...",
                          attempt=attempt, states=status.member_states())
            if attempt < settings.max_attempts:
                self.sleep(settings.poll_interval)

        log_event(logger, logging.ERROR, "converge.timeout",
                  f"Replica set '{spec.name}' did not converge after {settings.max_attempts} polls.",
                  last_states=last_status.member_states() if last_status else None)
        raise ConvergenceTimeoutError(
            f"Replica set '{spec.name}' did not converge after {settings.max_attempts} polls.",
            last_status=last_status,
            attempts=settings.max_attempts,
        )

    def _ready(self, status: ReplicaSetStatus, polls: int) -> Summary:
        summary = Summary(
            primary_host=status.primary.host,
            member_states=status.member_states(),
            elapsed_polls=polls,
        )
        log_event(logger, logging.INFO, "ready", f"PRIMARY: {summary.primary_host}",
                  primary=summary.primary_host, polls=polls)
        return summary
