"""
SCRIPTORIUM - Self-Check Reports

The output of executing a plan: one CheckResult per check, in plan order,
and an overall status that is "pass" only if every check passed.
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from config import get_config
from ir.hashing import hash_bytes


class ReportStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"


def _utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class HashInfo(BaseModel):
    model_config = ConfigDict(extra="forbid")

    sha256: str = ""


class CheckResult(BaseModel):
    """Outcome of a single check, with hash evidence where applicable."""

    # "pass" is a keyword, so the JSON key is an alias
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    check_type: str
    label: str = ""
    passed: bool = Field(..., alias="pass")
    expected: Optional[HashInfo] = None
    actual: Optional[HashInfo] = None
    details: Optional[Dict[str, Any]] = None


class Report(BaseModel):
    """Self-check report."""

    model_config = ConfigDict(extra="forbid")

    report_version: str = Field(default_factory=lambda: get_config().selfcheck.report_version)
    created_at: str = Field(default_factory=_utc_now)
    plan_id: str
    results: List[CheckResult] = Field(default_factory=list)
    status: ReportStatus = ReportStatus.PASS

    @classmethod
    def from_results(cls, plan_id: str, results: List[CheckResult]) -> "Report":
        status = ReportStatus.PASS if all(r.passed for r in results) else ReportStatus.FAIL
        return cls(plan_id=plan_id, results=results, status=status)

    @property
    def passed(self) -> bool:
        return self.status == ReportStatus.PASS

    def failures(self) -> List[CheckResult]:
        return [r for r in self.results if not r.passed]

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json(self, indent: int = 2) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=indent)

    def hash(self) -> str:
        """SHA-256 of the compact JSON form."""
        return hash_bytes(self.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8"))

    @classmethod
    def from_json(cls, text: str) -> "Report":
        return cls.model_validate_json(text)
