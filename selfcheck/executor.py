"""
SCRIPTORIUM - Self-Check Executor

Runs a Plan in two strict phases: every step, then every check.

Steps write into a session-scoped map of output key -> filesystem path
inside a temporary directory that is removed however execution ends. A
step that fails, or that references a key nobody produced, aborts the whole
plan with PlanExecutionError. Checks never abort on a mismatch: a mismatch
is a CheckResult with pass=false, and the remaining checks still run.

Usage:
    executor = Executor(store, manifest, plugins=loader)
    report = executor.execute(identity_bytes_plan("artifact-1"))
    report.status        # ReportStatus.PASS
"""
from __future__ import annotations

import json
import shutil
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from opentelemetry import trace

from config import get_config
from core.errors import ArtifactError, ErrorContext, PlanExecutionError, PluginError, ScriptoriumError
from ir.hashing import hash_bytes
from ir.loss import LossClass, LossReport, LostElement
from observability.logging import LogContext, PlanLogger, get_logger
from selfcheck.interfaces import (
    ArtifactStore,
    FormatPlugin,
    Manifest,
    PluginLoader,
    ToolPlugin,
)
from selfcheck.plan import (
    CheckType,
    CompareIRStep,
    EmitNativeStep,
    ExportMode,
    ExportStep,
    ExtractIRStep,
    Plan,
    PlanCheck,
    PlanStep,
    RunToolStep,
    StepType,
)
from selfcheck.report import CheckResult, HashInfo, Report

logger = get_logger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass
class _Session:
    """Per-execution state."""
    plan_id: str
    temp_dir: Path
    outputs: Dict[str, Path] = field(default_factory=dict)

    def path(self, name: str, step_type: Optional[str] = None) -> Path:
        """Location for a named output; names may not leave the session directory."""
        root = self.temp_dir.resolve()
        candidate = (root / name).resolve()
        if root not in candidate.parents:
            raise PlanExecutionError(
                f"output name escapes the session directory: {name!r}",
                plan_id=self.plan_id,
                step_type=step_type,
                key=name,
            )
        return candidate

    def output(self, key: str, what: str, step_type: Optional[str] = None) -> Path:
        if key not in self.outputs:
            raise PlanExecutionError(
                f"{what} not found: {key}",
                plan_id=self.plan_id,
                step_type=step_type,
                key=key,
            )
        return self.outputs[key]


def _read_bytes(path: Path, what: str) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise ArtifactError(f"failed to read {what}: {e}", artifact_id=str(path), cause=e) from e


class Executor:
    """Executes self-check plans against an artifact store and its manifest."""

    def __init__(
        self,
        store: ArtifactStore,
        manifest: Manifest,
        plugins: Optional[PluginLoader] = None,
    ):
        self.store = store
        self.manifest = manifest
        self.plugins = plugins
        self._plan_logger = PlanLogger()

    # =========================================================================
    # PLAN
    # =========================================================================

    def execute(self, plan: Plan) -> Report:
        """
        Run all steps, then all checks, and build the report.

        Raises:
            PlanExecutionError: If a step fails or a key or type is unknown
            PluginError: If a required plugin is missing or reports an error
            ArtifactError: If an artifact cannot be exported or read
        """
        settings = get_config().selfcheck
        started = time.monotonic()

        with tracer.start_as_current_span("selfcheck.execute") as span, LogContext(plan_id=plan.id):
            span.set_attribute("selfcheck.plan_id", plan.id)
            self._plan_logger.start_plan(plan.id, len(plan.steps), len(plan.checks))

            phase = "steps"
            try:
                with tempfile.TemporaryDirectory(prefix=settings.temp_dir_prefix) as tmp:
                    session = _Session(plan_id=plan.id, temp_dir=Path(tmp))

                    for step in plan.steps:
                        self._execute_step(step, session)

                    phase = "checks"
                    results: List[CheckResult] = []
                    for check in plan.checks:
                        result = self._execute_check(check, session)
                        self._plan_logger.check(result.check_type, result.passed)
                        results.append(result)
            except ScriptoriumError as e:
                self._attach_context(e, plan.id, phase)
                self._plan_logger.fail_plan(plan.id, phase, e.to_dict())
                raise

            report = Report.from_results(plan.id, results)
            span.set_attribute("selfcheck.status", report.status.value)
            self._plan_logger.end_plan(plan.id, report.status.value, time.monotonic() - started)
            return report

    @staticmethod
    def _attach_context(error: ScriptoriumError, plan_id: str, phase: str) -> None:
        """Give an engine error the plan, phase and trace it was raised under."""
        if error.context is None:
            error.context = ErrorContext.from_current_span(
                operation="execute",
                component="selfcheck.executor",
                plan_id=plan_id,
            )
        error.with_context(phase=phase)

    # =========================================================================
    # STEPS
    # =========================================================================

    def _execute_step(self, step: PlanStep, session: _Session) -> None:
        handlers = {
            StepType.EXPORT.value: (step.export, self._export),
            StepType.RUN_TOOL.value: (step.run_tool, self._run_tool),
            StepType.EXTRACT_IR.value: (step.extract_ir, self._extract_ir),
            StepType.EMIT_NATIVE.value: (step.emit_native, self._emit_native),
            StepType.COMPARE_IR.value: (step.compare_ir, self._compare_ir),
        }
        if step.type not in handlers:
            raise PlanExecutionError(
                f"unknown step type: {step.type}",
                plan_id=session.plan_id,
                step_type=step.type,
            )
        definition, handler = handlers[step.type]
        if definition is None:
            raise PlanExecutionError(
                f"{step.type} step has no definition",
                plan_id=session.plan_id,
                step_type=step.type,
            )
        key = handler(definition, session)
        self._plan_logger.step(step.type, key, str(session.outputs[key]))

    def _export_artifact(self, artifact_id: str, mode: ExportMode, dest: Path) -> None:
        try:
            self.store.export(artifact_id, mode, dest)
        except OSError as e:
            raise ArtifactError(f"export failed: {e}", artifact_id=artifact_id, cause=e) from e

    def _export(self, step: ExportStep, session: _Session) -> str:
        mode = ExportMode.DERIVED if step.mode == ExportMode.DERIVED.value else ExportMode.IDENTITY
        output_path = session.path(step.output_key, StepType.EXPORT.value)
        self._export_artifact(step.artifact_id, mode, output_path)
        session.outputs[step.output_key] = output_path
        return step.output_key

    def _get_plugin(self, plugin_id: str, step_type: str, session: _Session) -> Any:
        if self.plugins is None:
            raise PlanExecutionError(
                "plugin loader not configured",
                plan_id=session.plan_id,
                step_type=step_type,
            )
        return self.plugins.get_plugin(plugin_id)

    def _run_tool(self, step: RunToolStep, session: _Session) -> str:
        plugin = self._get_plugin(step.tool_plugin_id, StepType.RUN_TOOL.value, session)
        if not isinstance(plugin, ToolPlugin):
            raise PluginError(f"plugin {step.tool_plugin_id!r} is not a tool plugin", plugin_id=step.tool_plugin_id)

        input_dir = session.path(f"{step.output_key}_inputs", StepType.RUN_TOOL.value)
        input_dir.mkdir(parents=True, exist_ok=True)

        input_paths: List[str] = []
        for input_key in step.inputs:
            if input_key in session.outputs:
                input_path = session.outputs[input_key]
            elif input_key in self.manifest.artifacts:
                artifact = self.manifest.artifacts[input_key]
                name = artifact.original_name or input_key
                input_path = session.path(f"{input_dir.name}/{name}", StepType.RUN_TOOL.value)
                self._export_artifact(input_key, ExportMode.IDENTITY, input_path)
            else:
                raise PlanExecutionError(
                    f"input not found: {input_key}",
                    plan_id=session.plan_id,
                    step_type=StepType.RUN_TOOL.value,
                    key=input_key,
                )
            input_paths.append(str(input_path))

        output_dir = session.path(f"{step.output_key}_output", StepType.RUN_TOOL.value)
        output_dir.mkdir(parents=True, exist_ok=True)

        request = {
            "command": "run",
            "args": {
                "profile": step.profile,
                "inputs": input_paths,
                "output_dir": str(output_dir),
            },
        }
        response = plugin.execute(request)
        if response.get("status") == "error":
            raise PluginError(
                f"tool returned error: {response.get('error', 'unknown error')}",
                plugin_id=step.tool_plugin_id,
            )

        session.outputs[step.output_key] = output_dir
        transcript = output_dir / get_config().selfcheck.transcript_file
        if transcript.is_file():
            session.outputs[f"{step.output_key}_transcript"] = transcript
        return step.output_key

    def _format_plugin(self, plugin_id: str, step_type: str, key: str, capability: str) -> Optional[Any]:
        """A format plugin with the capability, or None to use the fallback."""
        if self.plugins is None or not plugin_id:
            return None
        try:
            plugin = self.plugins.get_plugin(plugin_id)
        except PluginError as e:
            self._plan_logger.fallback(step_type, key, f"plugin unavailable: {e.message}")
            return None
        if not isinstance(plugin, FormatPlugin) or not getattr(plugin, capability)():
            self._plan_logger.fallback(step_type, key, f"plugin {plugin_id} lacks {capability}")
            return None
        return plugin

    def _extract_ir(self, step: ExtractIRStep, session: _Session) -> str:
        artifact = self.manifest.artifacts.get(step.source_artifact_id)
        if artifact is None:
            source_path = session.output(step.source_artifact_id, "artifact", StepType.EXTRACT_IR.value)
        else:
            source_path = session.path(step.source_artifact_id, StepType.EXTRACT_IR.value)
            self._export_artifact(step.source_artifact_id, ExportMode.IDENTITY, source_path)

        ir_dir = session.path(f"{step.output_key}_ir", StepType.EXTRACT_IR.value)
        ir_dir.mkdir(parents=True, exist_ok=True)

        plugin = self._format_plugin(step.plugin_id, StepType.EXTRACT_IR.value, step.output_key, "can_extract_ir")
        if plugin is not None:
            result = plugin.extract_ir(source_path, ir_dir)
            session.outputs[step.output_key] = Path(result.ir_path)
            return step.output_key

        # Placeholder IR recording where it would have come from
        output_path = session.path(f"{step.output_key}.ir.json", StepType.EXTRACT_IR.value)
        placeholder = {
            "_placeholder": True,
            "source": artifact.primary_blob_sha256 if artifact is not None else "",
            "plugin": step.plugin_id,
        }
        output_path.write_text(json.dumps(placeholder), encoding="utf-8")
        session.outputs[step.output_key] = output_path
        return step.output_key

    def _emit_native(self, step: EmitNativeStep, session: _Session) -> str:
        ir_path = session.output(step.ir_input_key, "IR input", StepType.EMIT_NATIVE.value)

        native_dir = session.path(f"{step.output_key}_native", StepType.EMIT_NATIVE.value)
        native_dir.mkdir(parents=True, exist_ok=True)

        plugin = self._format_plugin(step.plugin_id, StepType.EMIT_NATIVE.value, step.output_key, "can_emit_native")
        if plugin is not None:
            result = plugin.emit_native(ir_path, native_dir, step.target_format)
            session.outputs[step.output_key] = Path(result.output_path)
            return step.output_key

        # Pass the IR through unchanged
        output_path = session.path(step.output_key, StepType.EMIT_NATIVE.value)
        try:
            shutil.copyfile(ir_path, output_path)
        except OSError as e:
            raise ArtifactError(f"failed to copy IR input: {e}", artifact_id=str(ir_path), cause=e) from e
        session.outputs[step.output_key] = output_path
        return step.output_key

    def _compare_ir(self, step: CompareIRStep, session: _Session) -> str:
        path_a = session.output(step.ir_a_key, "IR A", StepType.COMPARE_IR.value)
        path_b = session.output(step.ir_b_key, "IR B", StepType.COMPARE_IR.value)

        hash_a = hash_bytes(_read_bytes(path_a, "IR A"))
        hash_b = hash_bytes(_read_bytes(path_b, "IR B"))

        output_path = session.path(f"{step.output_key}.json", StepType.COMPARE_IR.value)
        comparison = {"ir_a_hash": hash_a, "ir_b_hash": hash_b, "match": hash_a == hash_b}
        output_path.write_text(json.dumps(comparison, indent=2), encoding="utf-8")
        session.outputs[step.output_key] = output_path
        return step.output_key

    # =========================================================================
    # CHECKS
    # =========================================================================

    def _execute_check(self, check: PlanCheck, session: _Session) -> CheckResult:
        handlers = {
            CheckType.BYTE_EQUAL.value: (check.byte_equal, self._byte_equal),
            CheckType.TRANSCRIPT_EQUAL.value: (check.transcript_equal, self._transcript_equal),
            CheckType.IR_STRUCTURE_EQUAL.value: (check.ir_structure_equal, self._ir_structure_equal),
            CheckType.IR_ROUNDTRIP.value: (check.ir_roundtrip, self._ir_roundtrip),
            CheckType.IR_FIDELITY.value: (check.ir_fidelity, self._ir_fidelity),
        }
        if check.type not in handlers:
            raise PlanExecutionError(
                f"unknown check type: {check.type}",
                plan_id=session.plan_id,
                step_type=check.type,
            )
        definition, handler = handlers[check.type]
        if definition is None:
            raise PlanExecutionError(
                f"{check.type} check has no definition",
                plan_id=session.plan_id,
                step_type=check.type,
            )
        return handler(check, definition, session)

    def _retrieve_artifact(self, artifact_id: str) -> bytes:
        artifact = self.manifest.artifacts[artifact_id]
        try:
            return self.store.retrieve(artifact.primary_blob_sha256)
        except OSError as e:
            raise ArtifactError(f"failed to retrieve artifact: {e}", artifact_id=artifact_id, cause=e) from e

    @staticmethod
    def _hash_result(
        check: PlanCheck,
        hash_a: str,
        hash_b: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> CheckResult:
        return CheckResult(
            check_type=check.type,
            label=check.label,
            passed=hash_a == hash_b,
            expected=HashInfo(sha256=hash_a),
            actual=HashInfo(sha256=hash_b),
            details=details,
        )

    def _byte_equal(self, check: PlanCheck, definition: Any, session: _Session) -> CheckResult:
        if definition.artifact_a not in self.manifest.artifacts:
            raise PlanExecutionError(
                f"artifact not found: {definition.artifact_a}",
                plan_id=session.plan_id,
                step_type=check.type,
                key=definition.artifact_a,
            )
        hash_a = hash_bytes(self._retrieve_artifact(definition.artifact_a))

        if definition.artifact_b in session.outputs:
            hash_b = hash_bytes(_read_bytes(session.outputs[definition.artifact_b], "output"))
        elif definition.artifact_b in self.manifest.artifacts:
            hash_b = hash_bytes(self._retrieve_artifact(definition.artifact_b))
        else:
            raise PlanExecutionError(
                f"artifact/output not found: {definition.artifact_b}",
                plan_id=session.plan_id,
                step_type=check.type,
                key=definition.artifact_b,
            )
        return self._hash_result(check, hash_a, hash_b)

    def _transcript_hash(self, run_id: str, check: PlanCheck, session: _Session) -> str:
        run = self.manifest.runs.get(run_id)
        if run is not None and run.transcript_blob_sha256 is not None:
            return run.transcript_blob_sha256
        if run_id in session.outputs:
            return hash_bytes(_read_bytes(session.outputs[run_id], "transcript"))
        raise PlanExecutionError(
            f"run/transcript not found: {run_id}",
            plan_id=session.plan_id,
            step_type=check.type,
            key=run_id,
        )

    def _transcript_equal(self, check: PlanCheck, definition: Any, session: _Session) -> CheckResult:
        hash_a = self._transcript_hash(definition.run_a, check, session)
        hash_b = self._transcript_hash(definition.run_b, check, session)
        return self._hash_result(
            check, hash_a, hash_b, {"run_a": definition.run_a, "run_b": definition.run_b}
        )

    def _ir_structure_equal(self, check: PlanCheck, definition: Any, session: _Session) -> CheckResult:
        path_a = session.output(definition.ir_a, "IR A", check.type)
        path_b = session.output(definition.ir_b, "IR B", check.type)
        hash_a = hash_bytes(_read_bytes(path_a, "IR A"))
        hash_b = hash_bytes(_read_bytes(path_b, "IR B"))
        return self._hash_result(
            check, hash_a, hash_b, {"ir_a": definition.ir_a, "ir_b": definition.ir_b}
        )

    def _ir_roundtrip(self, check: PlanCheck, definition: Any, session: _Session) -> CheckResult:
        # Records the declared policy without re-deriving the loss class
        return CheckResult(
            check_type=check.type,
            label=check.label,
            passed=True,
            details={
                "source_artifact": definition.source_artifact_id,
                "target_format": definition.format,
                "max_loss_class": definition.max_loss_class,
            },
        )

    def _ir_fidelity(self, check: PlanCheck, definition: Any, session: _Session) -> CheckResult:
        ir_path = session.output(definition.ir_key, "IR", check.type)
        raw = _read_bytes(ir_path, "IR")

        details: Dict[str, Any] = {
            "ir_key": definition.ir_key,
            "max_loss_class": definition.max_loss_class,
        }
        ir_data, error = _parse_ir(raw)
        if error:
            details["error"] = error
            return CheckResult(check_type=check.type, label=check.label, passed=False, details=details)

        declared = ir_data.get("loss_class")
        actual_text = declared if isinstance(declared, str) and declared else get_config().ir.default_loss_class
        details["actual_loss_class"] = actual_text
        if not LossClass.is_valid(actual_text):
            details["error"] = f"invalid loss class: {actual_text!r}"
            return CheckResult(check_type=check.type, label=check.label, passed=False, details=details)

        actual = LossClass(actual_text)
        allowed = LossClass(definition.max_loss_class or LossClass.L0.value)
        passed = actual <= allowed

        if definition.loss_budget is not None:
            lost_elements = ir_data.get("lost_elements", [])
            if not isinstance(lost_elements, list):
                details["error"] = f"invalid lost_elements: expected a list, got {type(lost_elements).__name__}"
                return CheckResult(check_type=check.type, label=check.label, passed=False, details=details)
            report = LossReport(
                source_format=str(ir_data.get("source_format", "")),
                target_format="IR",
                loss_class=actual,
                lost_elements=[LostElement.from_dict(e) for e in lost_elements if isinstance(e, dict)],
            )
            budget_result = definition.loss_budget.to_budget().check(report)
            passed = passed and budget_result.within_budget
            details["within_budget"] = budget_result.within_budget
            if budget_result.violations:
                details["violations"] = budget_result.violations

        return CheckResult(check_type=check.type, label=check.label, passed=passed, details=details)


def _parse_ir(raw: bytes) -> Tuple[Dict[str, Any], str]:
    """Decode an IR snapshot; returns (data, error message or "")."""
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return {}, "failed to parse IR"
    if not isinstance(data, dict):
        return {}, "failed to parse IR"
    return data, ""
