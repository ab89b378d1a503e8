"""
deadline_batch -- Background generation and status refresh for the deadline engine.

Runs reconciliation for every client on a bounded worker pool (one session
and one commit per client), drains the profile-change feed, and keeps an
in-memory display-status snapshot current on a fixed interval.

Architecture:
    deadline_batch/ is a top-level package.  Nothing in deadline_kernel/ or
    deadline_config/ imports from deadline_batch.

Invariants:
    - One client's failure never aborts the run for the others.
    - The rule catalog is read once per run.
    - Clock injection: every "today" comes from the orchestrator's clock.
    - The status refresher never writes to the task store.
    - Graceful shutdown: the refresher finishes its current tick on stop.
"""

from deadline_batch.orchestrator import DeadlineOrchestrator

__all__ = ["DeadlineOrchestrator"]
