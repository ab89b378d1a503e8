"""
Applicability predicates -- serializable conditions over a ClientProfile.

Contract:
    A rule's applicability is a small expression tree: ``Condition`` leaves
    (field, operator, value) combined by ``Junction`` nodes (ALL / ANY).
    Trees round-trip through plain dicts so they can be stored in YAML or a
    database and introspected without executing code.

Dict form::

    {"all": [
        {"field": "has_employees", "op": "eq", "value": true},
        {"any": [
            {"field": "legal_form", "op": "in", "value": ["OOO", "AO"]},
            {"field": "client_id", "op": "in", "value": ["c-42"]},
        ]},
    ]}

An empty ``{"all": []}`` (the default) applies to every client.

Failure modes:
    - Unknown field -> UnknownConditionFieldError.
    - Unknown operator or malformed node -> ValueError.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from deadline_kernel.domain.types import ClientProfile
from deadline_kernel.exceptions import UnknownConditionFieldError

PROFILE_FIELDS: tuple[str, ...] = (
    "client_id",
    "legal_form",
    "tax_regime",
    "is_vat_payer",
    "has_employees",
    "profit_advance_periodicity",
)


class ConditionOperator(str, Enum):
    EQ = "eq"
    NE = "ne"
    IN = "in"
    NOT_IN = "not_in"


class JunctionMode(str, Enum):
    ALL = "all"
    ANY = "any"


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


@dataclass(frozen=True)
class Condition:
    field: str
    operator: ConditionOperator
    value: Any

    def __post_init__(self) -> None:
        if self.field not in PROFILE_FIELDS:
            raise UnknownConditionFieldError(self.field, PROFILE_FIELDS)
        if self.operator in (ConditionOperator.IN, ConditionOperator.NOT_IN):
            if isinstance(self.value, (str, bytes)) or not hasattr(self.value, "__iter__"):
                raise ValueError(
                    f"Operator '{self.operator.value}' needs a list value, "
                    f"got {self.value!r}"
                )
            object.__setattr__(self, "value", tuple(_plain(v) for v in self.value))
        else:
            object.__setattr__(self, "value", _plain(self.value))

    def evaluate(self, profile: ClientProfile) -> bool:
        actual = _plain(getattr(profile, self.field))
        if self.operator == ConditionOperator.EQ:
            return actual == self.value
        if self.operator == ConditionOperator.NE:
            return actual != self.value
        if self.operator == ConditionOperator.IN:
            return actual in self.value
        return actual not in self.value

    def to_dict(self) -> dict[str, Any]:
        value = list(self.value) if isinstance(self.value, tuple) else self.value
        return {"field": self.field, "op": self.operator.value, "value": value}


@dataclass(frozen=True)
class Junction:
    mode: JunctionMode
    terms: tuple[Predicate, ...] = ()

    def evaluate(self, profile: ClientProfile) -> bool:
        if self.mode == JunctionMode.ALL:
            return all(term.evaluate(profile) for term in self.terms)
        return any(term.evaluate(profile) for term in self.terms)

    def to_dict(self) -> dict[str, Any]:
        return {self.mode.value: [term.to_dict() for term in self.terms]}


Predicate = Union[Condition, Junction]

ALWAYS: Junction = Junction(JunctionMode.ALL, ())


def all_of(*terms: Predicate) -> Junction:
    return Junction(JunctionMode.ALL, tuple(terms))


def any_of(*terms: Predicate) -> Junction:
    return Junction(JunctionMode.ANY, tuple(terms))


def predicate_from_dict(data: dict[str, Any] | None) -> Predicate:
    """Parse the dict form into a predicate tree."""
    if not data:
        return ALWAYS
    if not isinstance(data, dict):
        raise ValueError(f"Applicability node must be a mapping, got {data!r}")

    for mode in JunctionMode:
        if mode.value in data:
            if len(data) != 1:
                raise ValueError(
                    f"Junction node must have exactly one key, got {sorted(data)}"
                )
            terms = data[mode.value] or []
            return Junction(mode, tuple(predicate_from_dict(t) for t in terms))

    try:
        field = data["field"]
        operator = ConditionOperator(data["op"])
    except KeyError as exc:
        raise ValueError(f"Condition node missing key {exc}") from exc
    return Condition(field=field, operator=operator, value=data.get("value"))


def describe(predicate: Predicate) -> str:
    """Human-readable rendering for logs and rule introspection."""
    if isinstance(predicate, Condition):
        return f"{predicate.field} {predicate.operator.value} {predicate.value!r}"
    if not predicate.terms:
        return "always" if predicate.mode == JunctionMode.ALL else "never"
    joiner = " and " if predicate.mode == JunctionMode.ALL else " or "
    return "(" + joiner.join(describe(t) for t in predicate.terms) + ")"
