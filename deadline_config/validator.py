"""
Configuration Validator (``deadline_config.validator``).

Responsibility
--------------
Validates a ``RuleSetDefinition`` and its engine settings before the rule
catalog is built.

Invariants enforced
-------------------
* Settings bounds -- positive worker count, non-negative windows and lead
  days, weekend days in 0..6, a known IANA timezone, a known title locale.
* Rule-id uniqueness within one set file.
* Every ``disabled_rules`` entry names a rule that exists (warning).
* Rejected rules are reported as warnings; the rest of the set stays
  usable, and the catalog logs each rejection again when it is built.

Failure modes
-------------
* Validation errors (``ConfigValidationResult.errors``)  -> the set MUST
  NOT be used.
* Validation warnings  -> the set is usable but should be reviewed.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from deadline_config.schema import EngineSettings, RuleSetDefinition
from deadline_kernel.domain.titles import MONTH_NAMES


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    Contract
    --------
    * ``is_valid`` returns ``True`` only when ``errors`` is empty.
    * Warnings do not block use but should be reviewed.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_settings(settings: EngineSettings) -> ConfigValidationResult:
    result = ConfigValidationResult()
    generation = settings.generation
    calendar = settings.calendar
    lifecycle = settings.lifecycle

    if generation.max_workers < 1:
        result.add_error(f"generation.max_workers must be >= 1, got {generation.max_workers}")
    if generation.years_back < 0 or generation.years_forward < 0:
        result.add_error("generation.years_back/years_forward must be >= 0")
    if generation.locale not in MONTH_NAMES:
        result.add_error(
            f"generation.locale '{generation.locale}' has no month names "
            f"(known: {sorted(MONTH_NAMES)})"
        )
    if calendar.years_back < 0 or calendar.years_forward < 0:
        result.add_error("calendar.years_back/years_forward must be >= 0")
    bad_days = sorted(d for d in calendar.weekend_days if not 0 <= d <= 6)
    if bad_days:
        result.add_error(f"calendar.weekend_days outside 0..6: {bad_days}")
    try:
        ZoneInfo(calendar.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        result.add_error(f"calendar.timezone '{calendar.timezone}' is not a known IANA zone")
    if lifecycle.completion_lead_days < 0:
        result.add_error("lifecycle.completion_lead_days must be >= 0")
    if lifecycle.refresh_interval_seconds <= 0:
        result.add_error("lifecycle.refresh_interval_seconds must be > 0")
    if calendar.years_forward < generation.years_forward:
        result.add_warning(
            "calendar.years_forward is shorter than generation.years_forward; "
            "late years resolve weekend-only"
        )
    return result


def validate_rule_set(definition: RuleSetDefinition) -> ConfigValidationResult:
    result = validate_settings(definition.settings)

    counts = Counter(rule.rule_id for rule in definition.rules)
    for rule_id, count in sorted(counts.items()):
        if count > 1:
            result.add_error(f"Duplicate rule id '{rule_id}' ({count} definitions)")

    known = set(counts)
    for rule_id in sorted(definition.disabled_rules - known):
        if definition.extends is None:
            result.add_warning(f"disabled_rules names unknown rule '{rule_id}'")

    for rejected in definition.rejected:
        result.add_warning(f"Rule '{rejected.rule_id}' rejected: {rejected.reason}")

    return result
