"""
Tests for self-check plan models and canned plans.
"""
import json

import pytest
from pydantic import ValidationError

from ir.loss import LossClass
from selfcheck.plan import (
    CheckType,
    ExportMode,
    IRFidelityDef,
    LossBudgetDef,
    Plan,
    StepType,
    behavior_identity_plan,
    identity_bytes_plan,
)


PLAN_JSON = {
    "id": "osis-roundtrip",
    "description": "Extract IR from OSIS and emit it back",
    "steps": [
        {"type": "EXPORT", "export": {"mode": "IDENTITY", "artifact_id": "osis-kjv", "output_key": "src"}},
        {"type": "EXTRACT_IR", "extract_ir": {"source_artifact_id": "osis-kjv", "plugin_id": "format.osis", "output_key": "ir"}},
        {"type": "EMIT_NATIVE", "emit_native": {"ir_input_key": "ir", "plugin_id": "format.osis", "target_format": "osis", "output_key": "native"}},
    ],
    "checks": [
        {"type": "IR_FIDELITY", "label": "fidelity", "ir_fidelity": {"ir_key": "ir", "max_loss_class": "L1",
                                                                       "loss_budget": {"max_loss_class": "L1", "max_lost_elements": 3}}},
    ],
}


def test_identity_bytes_plan():
    plan = identity_bytes_plan("osis-kjv")
    assert plan.id == "identity-bytes"
    assert len(plan.steps) == 1
    step = plan.steps[0]
    assert step.type == StepType.EXPORT.value
    assert step.export.mode == ExportMode.IDENTITY.value
    assert step.export.artifact_id == "osis-kjv"
    assert step.export.output_key == "exported"

    assert len(plan.checks) == 1
    check = plan.checks[0]
    assert check.type == CheckType.BYTE_EQUAL.value
    assert check.byte_equal.artifact_a == "osis-kjv"
    assert check.byte_equal.artifact_b == "exported"


def test_behavior_identity_plan():
    plan = behavior_identity_plan("run-1", "run-2")
    assert plan.id == "behavior-identity"
    assert plan.steps == []
    assert plan.checks[0].type == CheckType.TRANSCRIPT_EQUAL.value
    assert plan.checks[0].transcript_equal.run_a == "run-1"
    assert plan.checks[0].transcript_equal.run_b == "run-2"


def test_plan_from_json():
    plan = Plan.from_json(json.dumps(PLAN_JSON))
    assert [s.type for s in plan.steps] == ["EXPORT", "EXTRACT_IR", "EMIT_NATIVE"]
    fidelity = plan.checks[0].ir_fidelity
    assert fidelity.max_loss_class == "L1"
    assert fidelity.loss_budget.to_budget().max_lost_elements == 3
    assert fidelity.loss_budget.to_budget().max_loss_class is LossClass.L1


def test_plan_json_roundtrip(tmp_path):
    plan = Plan.from_dict(PLAN_JSON)
    path = tmp_path / "plan.json"
    path.write_text(plan.to_json(), encoding="utf-8")
    assert Plan.load(path) == plan
    assert "run_tool" not in plan.to_dict()["steps"][0]


def test_unknown_type_tags_load():
    plan = Plan.from_dict({"id": "p", "steps": [{"type": "TELEPORT"}], "checks": [{"type": "VIBES"}]})
    assert plan.steps[0].type == "TELEPORT"
    assert plan.checks[0].type == "VIBES"


def test_unknown_fields_rejected():
    with pytest.raises(ValidationError):
        Plan.from_dict({"id": "p", "stepz": []})
    with pytest.raises(ValidationError):
        Plan.from_dict({"id": "p", "steps": [{"type": "EXPORT", "export": {"artifact_id": "a", "output_key": "o", "extra": 1}}]})


def test_invalid_loss_class_rejected():
    with pytest.raises(ValidationError):
        IRFidelityDef(ir_key="ir", max_loss_class="L9")
    with pytest.raises(ValidationError):
        LossBudgetDef(max_loss_class="worst")


def test_negative_element_cap_rejected():
    with pytest.raises(ValidationError):
        LossBudgetDef(max_lost_elements=-1)
