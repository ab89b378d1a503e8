"""
deadline_config -- public entry points for deadline-engine configuration.

Responsibility:
    Provides the ways to obtain configuration at runtime:
    ``list_active_rules()`` (the Rule Catalog read API),
    ``get_engine_settings()`` and ``load_holiday_source()``.  No other
    component reads the YAML files directly.

Architecture position:
    Configuration -- YAML-driven, validated on load.  This package sits
    above ``deadline_kernel`` and below ``deadline_batch``.  The kernel
    MUST NEVER import from ``deadline_config``.

Invariants enforced:
    - Tenant sets live in ``sets/<dir>/root.yaml`` (+ ``rules.yaml``).  A
      set may ``extends`` another tenant: the parent's rules come first,
      rules with the same id are replaced in place, new rules are appended,
      and ``disabled_rules`` are removed last.
    - A catalog is read once per generation cycle; there is no live reload.
    - Deterministic: the same YAML always yields the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- no set for the tenant, or no calendar file.
    - ``ValueError`` -- settings validation failed, or an ``extends`` cycle.
    - Individual malformed rules do NOT fail the call; they are logged as
      ``rule_rejected`` and left out of the catalog.

Audit relevance:
    Every ``list_active_rules()`` call emits a ``DEADLINE_RULES_TRACE`` log
    entry with the tenant, version, checksum and rule counts.
"""

from __future__ import annotations

import logging
from pathlib import Path

from deadline_config.calendars import YamlHolidaySource
from deadline_config.loader import compute_checksum, load_rule_set, load_yaml_file
from deadline_config.schema import EngineSettings, RuleSetDefinition
from deadline_config.validator import validate_rule_set
from deadline_kernel.domain.rules import Rule, RuleCatalog

_logger = logging.getLogger("deadline_kernel.config")

# Default directories shipped with the package
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"
_DEFAULT_CALENDAR_DIR = Path(__file__).parent / "calendars"


def list_active_rules(tenant: str, config_dir: Path | None = None) -> RuleCatalog:
    """Build the tenant's validated rule catalog.

    Guarantees:
        - Rules appear in definition order (parent set first).
        - Inactive, disabled and invalid rules are excluded; invalid ones
          are listed in ``catalog.rejected``.
        - A ``DEADLINE_RULES_TRACE`` log entry is emitted.

    Raises:
        FileNotFoundError: If no set matches the tenant.
        ValueError: If validation fails or ``extends`` forms a cycle.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    chain = _resolve_chain(sets_dir, tenant)
    leaf = chain[-1]

    for definition in chain:
        validation = validate_rule_set(definition)
        if not validation.is_valid:
            raise ValueError(
                f"Configuration validation failed for tenant '{definition.tenant}':\n"
                + "\n".join(f"  - {e}" for e in validation.errors)
            )

    merged: dict[str, Rule] = {}
    rejected = []
    disabled: set[str] = set()
    for definition in chain:
        for rule in definition.rules:
            merged[rule.rule_id] = rule
        rejected.extend(definition.rejected)
        disabled |= definition.disabled_rules

    rules = [rule for rule_id, rule in merged.items() if rule_id not in disabled]
    checksum = (
        leaf.checksum
        if len(chain) == 1
        else compute_checksum([d.checksum for d in chain])
    )
    for rejection in rejected:
        _logger.warning(
            "rule_rejected",
            extra={"rule_id": rejection.rule_id, "reason": rejection.reason, "tenant": tenant},
        )

    catalog = RuleCatalog.build(
        rules,
        tenant=tenant,
        version=leaf.version,
        checksum=checksum,
        rejected=rejected,
    )

    _logger.info(
        "DEADLINE_RULES_TRACE",
        extra={
            "trace_type": "DEADLINE_RULES_TRACE",
            "tenant": tenant,
            "rule_set_version": leaf.version,
            "checksum": checksum,
            "extends_chain": [d.tenant for d in chain],
            "rule_count": len(catalog),
            "rejected_count": len(catalog.rejected),
            "disabled_count": len(disabled),
        },
    )
    return catalog


def get_engine_settings(tenant: str, config_dir: Path | None = None) -> EngineSettings:
    """Settings from the tenant's own ``root.yaml`` (not inherited).

    Raises:
        FileNotFoundError: If no set matches the tenant.
        ValueError: If the settings fail validation.
    """
    from deadline_config.validator import validate_settings

    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    settings = _load_tenant_set(sets_dir, tenant).settings
    validation = validate_settings(settings)
    if not validation.is_valid:
        raise ValueError(
            f"Engine settings invalid for tenant '{tenant}':\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    return settings


def load_holiday_source(
    jurisdiction: str,
    calendar_dir: Path | None = None,
    weekend_days: frozenset[int] = frozenset({5, 6}),
) -> YamlHolidaySource:
    """Holiday source for ``calendars/<JURISDICTION>.yaml``.

    Raises:
        FileNotFoundError: If the jurisdiction has no calendar file.
    """
    path = (calendar_dir or _DEFAULT_CALENDAR_DIR) / f"{jurisdiction.upper()}.yaml"
    if not path.exists():
        raise FileNotFoundError(f"No holiday calendar for jurisdiction '{jurisdiction}': {path}")
    return YamlHolidaySource(jurisdiction.upper(), path, weekend_days)


def _load_tenant_set(sets_dir: Path, tenant: str) -> RuleSetDefinition:
    """Find the set whose ``tenant`` (or directory name) matches.

    Raises:
        FileNotFoundError: If ``sets_dir`` does not exist or nothing matches.
    """
    if not sets_dir.is_dir():
        raise FileNotFoundError(f"Configuration sets directory not found: {sets_dir}")

    for subdir in sorted(sets_dir.iterdir()):
        root_file = subdir / "root.yaml"
        if not subdir.is_dir() or not root_file.exists():
            continue
        declared = load_yaml_file(root_file).get("tenant", subdir.name)
        if declared == tenant:
            return load_rule_set(subdir)

    raise FileNotFoundError(f"No configuration set found for tenant '{tenant}' in {sets_dir}")


def _resolve_chain(sets_dir: Path, tenant: str) -> list[RuleSetDefinition]:
    """Return [root ancestor, ..., tenant]."""
    chain: list[RuleSetDefinition] = []
    seen: set[str] = set()
    current: str | None = tenant
    while current is not None:
        if current in seen:
            raise ValueError(f"Cyclic 'extends' chain: {' -> '.join([*seen, current])}")
        seen.add(current)
        definition = _load_tenant_set(sets_dir, current)
        chain.append(definition)
        current = definition.extends
    chain.reverse()
    return chain


__all__ = [
    "list_active_rules",
    "get_engine_settings",
    "load_holiday_source",
    "YamlHolidaySource",
    "EngineSettings",
]
