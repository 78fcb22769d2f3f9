"""
SCRIPTORIUM - Self-Check Module

Declarative round-trip verification:
- Plans: typed steps followed by typed checks
- Executor: runs a plan against an artifact store and plugins
- Reports: per-check results with hash evidence

Usage:
    from selfcheck import Executor, identity_bytes_plan

    report = Executor(store, manifest).execute(identity_bytes_plan("a1"))
"""
from selfcheck.executor import Executor
from selfcheck.interfaces import (
    ArtifactStore,
    EmitNativeResult,
    ExtractIRResult,
    FormatPlugin,
    Manifest,
    ManifestArtifact,
    Plugin,
    PluginLoader,
    RunRecord,
    ToolPlugin,
)
from selfcheck.plan import (
    ByteEqualDef,
    CheckType,
    CompareIRStep,
    EmitNativeStep,
    ExportMode,
    ExportStep,
    ExtractIRStep,
    IRFidelityDef,
    IRRoundtripDef,
    IRStructureEqualDef,
    LossBudgetDef,
    Plan,
    PlanCheck,
    PlanStep,
    RunToolStep,
    StepType,
    TranscriptEqualDef,
    behavior_identity_plan,
    identity_bytes_plan,
)
from selfcheck.report import CheckResult, HashInfo, Report, ReportStatus

__all__ = [
    # Executor
    "Executor",
    # Collaborators
    "ArtifactStore",
    "EmitNativeResult",
    "ExtractIRResult",
    "FormatPlugin",
    "Manifest",
    "ManifestArtifact",
    "Plugin",
    "PluginLoader",
    "RunRecord",
    "ToolPlugin",
    # Plans
    "ByteEqualDef",
    "CheckType",
    "CompareIRStep",
    "EmitNativeStep",
    "ExportMode",
    "ExportStep",
    "ExtractIRStep",
    "IRFidelityDef",
    "IRRoundtripDef",
    "IRStructureEqualDef",
    "LossBudgetDef",
    "Plan",
    "PlanCheck",
    "PlanStep",
    "RunToolStep",
    "StepType",
    "TranscriptEqualDef",
    "behavior_identity_plan",
    "identity_bytes_plan",
    # Reports
    "CheckResult",
    "HashInfo",
    "Report",
    "ReportStatus",
]
