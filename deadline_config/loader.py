"""
Configuration Loader (``deadline_config.loader``).

Responsibility
--------------
Loads YAML files and parses them into ``deadline_config.schema`` dataclasses
and kernel ``Rule`` / ``HolidayYear`` instances.  Runtime callers go through
the package entry points (``list_active_rules``, ``get_engine_settings``,
``load_holiday_source``), never through this module directly.

Invariants enforced
-------------------
* A malformed rule raises ``InvalidRuleDefinitionError`` naming the rule;
  ``load_rule_set`` collects those as rejections instead of failing the
  whole set.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid settings  -> ``ValueError`` / ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date, timedelta
from pathlib import Path
from typing import Any

import yaml

from deadline_config.schema import (
    CalendarSettings,
    EngineSettings,
    GenerationSettings,
    LifecycleSettings,
    RuleSetDefinition,
)
from deadline_kernel.domain.applicability import predicate_from_dict
from deadline_kernel.domain.calendar import DEFAULT_WEEKEND_DAYS, HolidayYear
from deadline_kernel.domain.rules import DateExpression, RejectedRule, Rule
from deadline_kernel.domain.types import (
    LockPolicy,
    Periodicity,
    RuleCategory,
    SpecialRule,
    TaskKind,
    TransferPolicy,
)
from deadline_kernel.exceptions import InvalidRuleDefinitionError, RuleError


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date:
    """Parse a date from YAML (string or date object)."""
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def compute_checksum(data: Any) -> str:
    """SHA-256 over the canonical JSON form of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str, ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


# =============================================================================
# Settings
# =============================================================================


def parse_settings(tenant: str, data: dict[str, Any]) -> EngineSettings:
    calendar = data.get("calendar") or {}
    generation = data.get("generation") or {}
    lifecycle = data.get("lifecycle") or {}

    return EngineSettings(
        tenant=tenant,
        version=str(data.get("version", "")),
        calendar=CalendarSettings(
            jurisdiction=calendar.get("jurisdiction", "RU"),
            years_back=int(calendar.get("years_back", 1)),
            years_forward=int(calendar.get("years_forward", 10)),
            weekend_days=frozenset(int(d) for d in calendar.get("weekend_days", (5, 6))),
            timezone=str(calendar.get("timezone", "UTC")),
        ),
        generation=GenerationSettings(
            years_back=int(generation.get("years_back", 0)),
            years_forward=int(generation.get("years_forward", 3)),
            max_workers=int(generation.get("max_workers", 4)),
            locale=generation.get("locale", "ru"),
        ),
        lifecycle=LifecycleSettings(
            completion_lead_days=int(lifecycle.get("completion_lead_days", 3)),
            prior_year_amnesty=bool(lifecycle.get("prior_year_amnesty", True)),
            refresh_interval_seconds=float(lifecycle.get("refresh_interval_seconds", 60)),
        ),
    )


# =============================================================================
# Rules
# =============================================================================


def _optional_int(value: Any) -> int | None:
    return None if value is None else int(value)


def parse_date_expression(data: dict[str, Any]) -> DateExpression:
    special = data.get("special_rule")
    return DateExpression(
        day=int(data.get("day", 0)),
        month=_optional_int(data.get("month")),
        month_offset=_optional_int(data.get("month_offset")),
        quarter_month_offset=_optional_int(data.get("quarter_month_offset")),
        special_rule=SpecialRule(special) if special else None,
    )


def parse_rule(data: dict[str, Any]) -> Rule:
    """
    Parse a ``Rule`` from a dict.

    Raises:
        InvalidRuleDefinitionError: if any field is missing or malformed.
    """
    rule_id = str(data.get("id", "<missing id>"))
    try:
        return Rule(
            rule_id=data["id"],
            title_template=data["title"],
            task_kind=TaskKind(data["kind"]),
            periodicity=Periodicity(data["periodicity"]),
            date_expression=parse_date_expression(data.get("date") or {}),
            transfer_policy=TransferPolicy(data.get("transfer", "next_business_day")),
            applicability=predicate_from_dict(data.get("applies_when")),
            excluded_periods=frozenset(int(p) for p in data.get("excluded_periods") or ()),
            predecessor_rule_id=data.get("predecessor"),
            lock_policy=LockPolicy(data.get("lock_policy", "due_month")),
            completion_lead_days=_optional_int(data.get("completion_lead_days")),
            category=RuleCategory(data.get("category", "tax")),
            short_title=data.get("short_title", ""),
            description=data.get("description", ""),
            law_reference=data.get("law_reference", ""),
            is_active=bool(data.get("active", True)),
            version=int(data.get("version", 1)),
        )
    except KeyError as exc:
        raise InvalidRuleDefinitionError(rule_id, f"missing key {exc}") from exc
    except (ValueError, TypeError, RuleError) as exc:
        raise InvalidRuleDefinitionError(rule_id, str(exc)) from exc


def load_rule_set(set_dir: Path) -> RuleSetDefinition:
    """
    Load ``root.yaml`` (and ``rules.yaml`` when present) from a set directory.

    Rules that fail to parse are returned in ``rejected``.
    """
    root = load_yaml_file(set_dir / "root.yaml")
    rules_file = set_dir / "rules.yaml"
    rules_raw = load_yaml_file(rules_file) if rules_file.exists() else {}

    tenant = root.get("tenant", set_dir.name)
    rules: list[Rule] = []
    rejected: list[RejectedRule] = []
    for entry in rules_raw.get("rules") or []:
        try:
            rules.append(parse_rule(entry))
        except InvalidRuleDefinitionError as exc:
            rejected.append(RejectedRule(exc.rule_id, exc.reason))

    return RuleSetDefinition(
        tenant=tenant,
        version=str(root.get("version", "")),
        settings=parse_settings(tenant, root),
        rules=tuple(rules),
        rejected=tuple(rejected),
        extends=root.get("extends"),
        disabled_rules=frozenset(root.get("disabled_rules") or ()),
        checksum=compute_checksum({"root": root, "rules": rules_raw}),
    )


# =============================================================================
# Holiday calendars
# =============================================================================

# One digit per day of the year
DAY_CODE_WORKDAY = "0"
DAY_CODE_DAY_OFF = "1"
DAY_CODE_SHORTENED = "2"
DAY_CODE_TRANSFERRED_WORKDAY = "4"


def parse_day_codes(
    year: int,
    codes: str,
    weekend_days: frozenset[int] = DEFAULT_WEEKEND_DAYS,
    source: str = "",
) -> HolidayYear:
    """
    Parse a compact per-day code string into a ``HolidayYear``.

    A day off on a weekday is a holiday; a working code on a weekend day is
    a transferred working weekend; code 2 marks a shortened working day.

    Raises:
        ValueError: wrong length or unknown code.
    """
    codes = "".join(codes.split())
    first = date(year, 1, 1)
    days_in_year = (date(year + 1, 1, 1) - first).days
    if len(codes) != days_in_year:
        raise ValueError(
            f"day_codes for {year} has {len(codes)} entries, expected {days_in_year}"
        )

    holidays: set[date] = set()
    working_weekends: set[date] = set()
    shortened: set[date] = set()
    for offset, code in enumerate(codes):
        day = first + timedelta(days=offset)
        weekend = day.weekday() in weekend_days
        if code == DAY_CODE_DAY_OFF:
            if not weekend:
                holidays.add(day)
        elif code in (DAY_CODE_WORKDAY, DAY_CODE_SHORTENED, DAY_CODE_TRANSFERRED_WORKDAY):
            if weekend:
                working_weekends.add(day)
            if code == DAY_CODE_SHORTENED:
                shortened.add(day)
        else:
            raise ValueError(f"Unknown day code {code!r} on {day.isoformat()}")

    return HolidayYear(
        year=year,
        holidays=frozenset(holidays),
        working_weekends=frozenset(working_weekends),
        shortened_days=frozenset(shortened),
        source=source,
    )


def parse_holiday_year(
    year: int,
    data: dict[str, Any],
    weekend_days: frozenset[int] = DEFAULT_WEEKEND_DAYS,
    source: str = "",
) -> HolidayYear:
    """Parse one year entry: either ``day_codes`` or explicit date lists."""
    if data.get("day_codes"):
        return parse_day_codes(year, data["day_codes"], weekend_days, source)

    def dates(key: str) -> frozenset[date]:
        parsed = frozenset(parse_date(v) for v in data.get(key) or ())
        stray = sorted(d for d in parsed if d.year != year)
        if stray:
            raise ValueError(f"{key} for {year} contains dates of another year: {stray}")
        return parsed

    return HolidayYear(
        year=year,
        holidays=dates("holidays"),
        working_weekends=dates("working_weekends"),
        shortened_days=dates("shortened_days"),
        source=source,
    )
