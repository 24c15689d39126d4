from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional


@dataclass(frozen=True)
class DistanceResult:
    origin: str
    destination: str
    miles: float
    estimated_cost: float
    cost_per_mile: float
    origin_postal_code: Optional[str] = None
    destination_postal_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "origin": self.origin,
            "destination": self.destination,
            "miles": self.miles,
            "estimated_cost": self.estimated_cost,
            "cost_per_mile": self.cost_per_mile,
        }
        if self.origin_postal_code:
            out["origin_postal_code"] = self.origin_postal_code
        if self.destination_postal_code:
            out["destination_postal_code"] = self.destination_postal_code
        return out


@dataclass(frozen=True)
class SelectionState:
    """
    The customer's answers for one rendering session.

    Values are never mutated in place: every change produces a new `SelectionState`,
    so whoever holds a reference always sees a consistent snapshot.

    `answers` maps a step key (or the synthetic distance key) to a selection token,
    free text, `{"option": token, "units": n}`, or a `DistanceResult`.
    `form_data` maps individual form field ids to their raw values.
    """

    answers: Mapping[str, Any] = field(default_factory=dict)
    form_data: Mapping[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.answers.get(key, default)

    def has_answer(self, key: str) -> bool:
        return is_answered(self.answers.get(key))

    def with_answer(self, key: str, value: Any) -> "SelectionState":
        answers = dict(self.answers)
        answers[key] = value
        return replace(self, answers=answers)

    def without_answer(self, key: str) -> "SelectionState":
        if key not in self.answers:
            return self
        answers = dict(self.answers)
        answers.pop(key, None)
        return replace(self, answers=answers)

    def with_form_fields(self, fields: Mapping[str, Any]) -> "SelectionState":
        form_data = dict(self.form_data)
        form_data.update(fields)
        return replace(self, form_data=form_data)

    def distance_result(self, key: str) -> Optional[DistanceResult]:
        value = self.answers.get(key)
        return value if isinstance(value, DistanceResult) else None

    def to_dict(self) -> Dict[str, Any]:
        """
        JSON-friendly merge of form data and answers (answers win on key clashes).
        """
        out: Dict[str, Any] = dict(self.form_data)
        for key, value in self.answers.items():
            out[key] = value.to_dict() if isinstance(value, DistanceResult) else value
        return out


def is_answered(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    if isinstance(value, Mapping):
        return bool(value)
    return True
