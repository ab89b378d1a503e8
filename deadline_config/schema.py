"""
Configuration Schema (``deadline_config.schema``).

Responsibility
--------------
Frozen dataclass definitions for every configuration artifact: engine
settings per tenant and the rule-set definition as read from YAML.

Architecture position
---------------------
**Config layer** -- pure data definitions.  Imported by ``loader``,
``validator`` and the package entry points.  Depends on the kernel's pure
domain types only.

Invariants enforced
-------------------
* Every dataclass is ``frozen=True``; artifacts are immutable once parsed.
* Collection fields use ``tuple`` / ``frozenset``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from deadline_kernel.domain.rules import RejectedRule, Rule


@dataclass(frozen=True)
class CalendarSettings:
    jurisdiction: str = "RU"
    years_back: int = 1
    years_forward: int = 10
    weekend_days: frozenset[int] = frozenset({5, 6})
    timezone: str = "UTC"  # Business date for "today"


@dataclass(frozen=True)
class GenerationSettings:
    """Window and fan-out of a generation cycle.

    The window runs from 1 January of ``today.year - years_back`` to
    31 December of ``today.year + years_forward``.
    """

    years_back: int = 0
    years_forward: int = 3
    max_workers: int = 4
    locale: str = "ru"


@dataclass(frozen=True)
class LifecycleSettings:
    completion_lead_days: int = 3
    prior_year_amnesty: bool = True
    refresh_interval_seconds: float = 60.0


@dataclass(frozen=True)
class EngineSettings:
    tenant: str
    version: str = ""
    calendar: CalendarSettings = field(default_factory=CalendarSettings)
    generation: GenerationSettings = field(default_factory=GenerationSettings)
    lifecycle: LifecycleSettings = field(default_factory=LifecycleSettings)


@dataclass(frozen=True)
class RuleSetDefinition:
    """One tenant's rule set as read from ``sets/<tenant>/``.

    ``rules`` holds successfully parsed rules only; rules that failed to
    parse are in ``rejected`` so the rest of the set stays usable.
    """

    tenant: str
    version: str
    settings: EngineSettings
    rules: tuple[Rule, ...] = ()
    rejected: tuple[RejectedRule, ...] = ()
    extends: str | None = None
    disabled_rules: frozenset[str] = frozenset()
    checksum: str = ""
