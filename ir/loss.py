"""
SCRIPTORIUM - Loss Classification & Budget

Fidelity taxonomy for conversions and the policy gate that enforces it.

    L0  byte-for-byte round-trip
    L1  semantically lossless, formatting may differ
    L2  minor loss (some metadata or annotations)
    L3  significant loss (structure)
    L4  text only

A budget violation is a result, never an exception: LossBudget.check()
always returns a LossBudgetResult describing every violation it found.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from core.types import AttributeValue


# =============================================================================
# LOSS CLASS
# =============================================================================


_DESCRIPTIONS = {
    "L0": "Byte-for-byte round-trip",
    "L1": "Semantically lossless (formatting may differ)",
    "L2": "Minor loss (some metadata or annotations)",
    "L3": "Significant loss (structure)",
    "L4": "Text only",
}


class LossClass(str, Enum):
    """Strictly ordered fidelity classes, L0 best."""
    L0 = "L0"
    L1 = "L1"
    L2 = "L2"
    L3 = "L3"
    L4 = "L4"

    @property
    def level(self) -> int:
        return int(self.value[1])

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self.value]

    def is_lossless(self) -> bool:
        return self is LossClass.L0

    def is_semantically_lossless(self) -> bool:
        return self.level <= 1

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, LossClass):
            return NotImplemented
        return self.level < other.level

    def __le__(self, other: object) -> bool:
        if not isinstance(other, LossClass):
            return NotImplemented
        return self.level <= other.level

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, LossClass):
            return NotImplemented
        return self.level > other.level

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, LossClass):
            return NotImplemented
        return self.level >= other.level

    @classmethod
    def is_valid(cls, value: Any) -> bool:
        return isinstance(value, str) and value in cls._value2member_map_

    @classmethod
    def parse(cls, value: str) -> "LossClass":
        """
        Parse "L0".."L4".

        Raises:
            ValueError: If the value is not a loss class
        """
        if not cls.is_valid(value):
            raise ValueError(f"invalid loss class: {value!r}")
        return cls(value)


# =============================================================================
# LOSS REPORT
# =============================================================================


@dataclass
class LostElement:
    """One piece of the source that did not survive conversion."""
    path: str
    element_type: str
    reason: str
    original_value: Optional[AttributeValue] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "path": self.path,
            "element_type": self.element_type,
            "reason": self.reason,
        }
        if self.original_value is not None:
            data["original_value"] = self.original_value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LostElement":
        return cls(
            path=data.get("path", ""),
            element_type=data.get("element_type", ""),
            reason=data.get("reason", ""),
            original_value=data.get("original_value"),
        )


@dataclass
class LossReport:
    """What was lost converting source_format into target_format."""
    source_format: str
    target_format: str
    loss_class: LossClass = LossClass.L0
    lost_elements: List[LostElement] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def has_loss(self) -> bool:
        """True if any element was recorded or the class itself signals loss."""
        return bool(self.lost_elements) or self.loss_class.level > 0

    def add_lost_element(
        self,
        path: str,
        element_type: str,
        reason: str,
        original_value: Optional[AttributeValue] = None,
    ) -> LostElement:
        element = LostElement(path, element_type, reason, original_value)
        self.lost_elements.append(element)
        return element

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "source_format": self.source_format,
            "target_format": self.target_format,
            "loss_class": self.loss_class.value,
        }
        if self.lost_elements:
            data["lost_elements"] = [e.to_dict() for e in self.lost_elements]
        if self.warnings:
            data["warnings"] = list(self.warnings)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LossReport":
        """
        Raises:
            ValueError: If loss_class is present but not a loss class
        """
        return cls(
            source_format=data.get("source_format", ""),
            target_format=data.get("target_format", ""),
            loss_class=LossClass.parse(data.get("loss_class") or "L0"),
            lost_elements=[LostElement.from_dict(e) for e in data.get("lost_elements", [])],
            warnings=list(data.get("warnings", [])),
        )


def combine_loss_classes(reports: Iterable[Optional[LossReport]]) -> LossClass:
    """Worst class across reports; None entries are skipped, nothing gives L0."""
    worst = LossClass.L0
    for report in reports:
        if report is not None and report.loss_class > worst:
            worst = report.loss_class
    return worst


# =============================================================================
# LOSS BUDGET
# =============================================================================


@dataclass
class LossBudgetResult:
    """Outcome of applying a budget to a report."""
    within_budget: bool
    actual_class: LossClass
    allowed_class: LossClass
    lost_element_count: int = 0
    violations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "within_budget": self.within_budget,
            "actual_class": self.actual_class.value,
            "allowed_class": self.allowed_class.value,
            "lost_element_count": self.lost_element_count,
            "violations": list(self.violations),
        }


@dataclass
class LossBudget:
    """
    Policy gate for conversions.

    max_lost_elements == 0 means no cap. Element types listed in
    allowed_element_types do not count against the cap; an empty list means
    every lost element counts.
    """
    max_loss_class: LossClass = LossClass.L0
    max_lost_elements: int = 0
    allowed_element_types: List[str] = field(default_factory=list)

    def relevant_lost_count(self, report: LossReport) -> int:
        if not self.allowed_element_types:
            return len(report.lost_elements)
        allowed = set(self.allowed_element_types)
        return sum(1 for e in report.lost_elements if e.element_type not in allowed)

    def is_within_budget(self, report: Optional[LossReport]) -> bool:
        return self.check(report).within_budget

    def check(self, report: Optional[LossReport]) -> LossBudgetResult:
        if report is None:
            return LossBudgetResult(
                within_budget=True,
                actual_class=LossClass.L0,
                allowed_class=self.max_loss_class,
            )

        violations: List[str] = []
        if report.loss_class > self.max_loss_class:
            violations.append(
                f"loss class {report.loss_class.value} exceeds maximum {self.max_loss_class.value}"
            )

        count = self.relevant_lost_count(report)
        if self.max_lost_elements > 0 and count > self.max_lost_elements:
            violations.append(
                f"{count} lost elements exceeds maximum {self.max_lost_elements}"
            )

        return LossBudgetResult(
            within_budget=not violations,
            actual_class=report.loss_class,
            allowed_class=self.max_loss_class,
            lost_element_count=count,
            violations=violations,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_loss_class": self.max_loss_class.value,
            "max_lost_elements": self.max_lost_elements,
            "allowed_element_types": list(self.allowed_element_types),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LossBudget":
        return cls(
            max_loss_class=LossClass.parse(data.get("max_loss_class") or "L0"),
            max_lost_elements=int(data.get("max_lost_elements", 0) or 0),
            allowed_element_types=list(data.get("allowed_element_types", [])),
        )
