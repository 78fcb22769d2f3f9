"""
SCRIPTORIUM - Self-Check Plans

A plan is a linear, statically declared pipeline: a list of typed steps
followed by a list of typed checks. There is no branching or looping.

Each step or check carries its type tag plus exactly one definition block
named after the type (``export``, ``run_tool``, ``byte_equal`` ...), the
same JSON layout plan files use on disk:

    {
      "id": "identity-bytes",
      "steps": [{"type": "EXPORT", "export": {"mode": "IDENTITY", ...}}],
      "checks": [{"type": "BYTE_EQUAL", "byte_equal": {...}}]
    }

Type tags are kept as plain strings so that a plan naming an unknown type
still loads; the executor rejects it when it reaches it.
"""
from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ir.loss import LossBudget, LossClass


class StepType(str, Enum):
    EXPORT = "EXPORT"
    RUN_TOOL = "RUN_TOOL"
    EXTRACT_IR = "EXTRACT_IR"
    EMIT_NATIVE = "EMIT_NATIVE"
    COMPARE_IR = "COMPARE_IR"


class CheckType(str, Enum):
    BYTE_EQUAL = "BYTE_EQUAL"
    TRANSCRIPT_EQUAL = "TRANSCRIPT_EQUAL"
    IR_STRUCTURE_EQUAL = "IR_STRUCTURE_EQUAL"
    IR_ROUNDTRIP = "IR_ROUNDTRIP"
    IR_FIDELITY = "IR_FIDELITY"


class ExportMode(str, Enum):
    """IDENTITY reproduces the stored bytes; DERIVED may re-encode."""
    IDENTITY = "IDENTITY"
    DERIVED = "DERIVED"


def _check_loss_class(value: Optional[str]) -> Optional[str]:
    if value and not LossClass.is_valid(value):
        raise ValueError(f"invalid loss class: {value!r}")
    return value


# =============================================================================
# STEP DEFINITIONS
# =============================================================================


class ExportStep(BaseModel):
    model_config = ConfigDict(extra="forbid")

    mode: str = Field(default=ExportMode.IDENTITY.value)
    artifact_id: str
    output_key: str


class RunToolStep(BaseModel):
    model_config = ConfigDict(extra="forbid")

    tool_plugin_id: str
    profile: str = ""
    inputs: List[str] = Field(default_factory=list)
    output_key: str


class ExtractIRStep(BaseModel):
    model_config = ConfigDict(extra="forbid")

    source_artifact_id: str
    plugin_id: str = ""
    output_key: str


class EmitNativeStep(BaseModel):
    model_config = ConfigDict(extra="forbid")

    ir_input_key: str
    plugin_id: str = ""
    target_format: str = ""
    output_key: str


class CompareIRStep(BaseModel):
    model_config = ConfigDict(extra="forbid")

    ir_a_key: str
    ir_b_key: str
    output_key: str


class PlanStep(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: str
    label: str = ""
    export: Optional[ExportStep] = None
    run_tool: Optional[RunToolStep] = None
    extract_ir: Optional[ExtractIRStep] = None
    emit_native: Optional[EmitNativeStep] = None
    compare_ir: Optional[CompareIRStep] = None


# =============================================================================
# CHECK DEFINITIONS
# =============================================================================


class ByteEqualDef(BaseModel):
    model_config = ConfigDict(extra="forbid")

    artifact_a: str
    artifact_b: str


class TranscriptEqualDef(BaseModel):
    model_config = ConfigDict(extra="forbid")

    run_a: str
    run_b: str


class IRStructureEqualDef(BaseModel):
    model_config = ConfigDict(extra="forbid")

    ir_a: str
    ir_b: str


class IRRoundtripDef(BaseModel):
    model_config = ConfigDict(extra="forbid")

    source_artifact_id: str
    format: str = ""
    max_loss_class: str = ""

    @field_validator("max_loss_class")
    @classmethod
    def validate_max_loss_class(cls, v: str) -> str:
        return _check_loss_class(v) or v


class LossBudgetDef(BaseModel):
    """JSON form of ir.loss.LossBudget."""
    model_config = ConfigDict(extra="forbid")

    max_loss_class: str = LossClass.L0.value
    max_lost_elements: int = Field(default=0, ge=0)
    allowed_element_types: List[str] = Field(default_factory=list)

    @field_validator("max_loss_class")
    @classmethod
    def validate_max_loss_class(cls, v: str) -> str:
        return _check_loss_class(v) or LossClass.L0.value

    def to_budget(self) -> LossBudget:
        return LossBudget(
            max_loss_class=LossClass(self.max_loss_class),
            max_lost_elements=self.max_lost_elements,
            allowed_element_types=list(self.allowed_element_types),
        )


class IRFidelityDef(BaseModel):
    model_config = ConfigDict(extra="forbid")

    ir_key: str
    max_loss_class: str
    loss_budget: Optional[LossBudgetDef] = None

    @field_validator("max_loss_class")
    @classmethod
    def validate_max_loss_class(cls, v: str) -> str:
        return _check_loss_class(v) or v


class PlanCheck(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: str
    label: str = ""
    byte_equal: Optional[ByteEqualDef] = None
    transcript_equal: Optional[TranscriptEqualDef] = None
    ir_structure_equal: Optional[IRStructureEqualDef] = None
    ir_roundtrip: Optional[IRRoundtripDef] = None
    ir_fidelity: Optional[IRFidelityDef] = None


# =============================================================================
# PLAN
# =============================================================================


class Plan(BaseModel):
    """A round-trip verification plan."""

    model_config = ConfigDict(extra="forbid")

    id: str
    description: str = ""
    steps: List[PlanStep] = Field(default_factory=list)
    checks: List[PlanCheck] = Field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)

    def to_json(self, indent: int = 2) -> str:
        return self.model_dump_json(exclude_none=True, indent=indent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Plan":
        return cls.model_validate(data)

    @classmethod
    def from_json(cls, text: Union[str, bytes]) -> "Plan":
        return cls.model_validate_json(text)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "Plan":
        return cls.from_json(Path(path).read_bytes())


# =============================================================================
# CANNED PLANS
# =============================================================================


def identity_bytes_plan(artifact_id: str) -> Plan:
    """Export an artifact in IDENTITY mode and require identical bytes."""
    return Plan(
        id="identity-bytes",
        description="Verify byte-for-byte identity export",
        steps=[
            PlanStep(
                type=StepType.EXPORT.value,
                label="Export artifact with IDENTITY mode",
                export=ExportStep(
                    mode=ExportMode.IDENTITY.value,
                    artifact_id=artifact_id,
                    output_key="exported",
                ),
            )
        ],
        checks=[
            PlanCheck(
                type=CheckType.BYTE_EQUAL.value,
                label="Original bytes equal exported bytes",
                byte_equal=ByteEqualDef(artifact_a=artifact_id, artifact_b="exported"),
            )
        ],
    )


def behavior_identity_plan(run_a: str, run_b: str) -> Plan:
    """Require two recorded tool runs to have produced identical transcripts."""
    return Plan(
        id="behavior-identity",
        description="Verify tool produces identical transcripts on repeated runs",
        checks=[
            PlanCheck(
                type=CheckType.TRANSCRIPT_EQUAL.value,
                label="First run transcript equals second run transcript",
                transcript_equal=TranscriptEqualDef(run_a=run_a, run_b=run_b),
            )
        ],
    )
