"""Scheduler package - task date calculation and dependency constraints.

This package provides:
- Date calculation for task trees (parents span their children)
- Predecessor constraint checking (FS/SS/FF/SF links with lag)
- Cascade recalculation of dependent tasks after an edit
- Cycle detection and critical path analysis
- Project buffer analysis and WBS numbering

Main entry points:
- SchedulingService: High-level service over one project's data
- TaskDateCalculator: Effective dates of a flat task list
- ConstraintEngine: Constraint checks against a date snapshot

Configuration:
- SchedulingConfig: Working day length, fallback start, same-day chaining
"""

# Core dataclasses
from .buffer import calculate_project_buffer, describe_buffer, projected_end_date
from .calculator import ParentSpans, TaskDateCalculator, calculate_task_dates
from .cascade import cascade_from, find_cycles_reachable_from, recalculate_cascade

# Configuration
from .config import SchedulingConfig
from .constraints import ConstraintEngine, audit_conflicts, check_task_constraints
from .core import (
    AssignedAllocation,
    BufferStatus,
    CascadeResult,
    CascadeUpdate,
    ConstraintCheck,
    ConstraintViolation,
    CriticalPathResult,
    CriticalPathTask,
    CycleReport,
    DatedTask,
    DateSpan,
    ProjectBuffer,
    ScheduleStatus,
    TargetStatus,
    TaskNode,
)
from .critical_path import calculate_critical_path
from .cycles import detect_cycles, would_create_cycle
from .hierarchy import (
    calculate_date_range,
    get_all_descendants,
    is_valid_wbs_code,
    next_wbs_code,
    organize_hierarchy,
    recalculate_wbs_codes,
    wbs_level,
)

# Batch edits
from .pending import PendingChanges, TaskPatch

# High-level service
from .service import SchedulingService

# Field synchronisation
from .sync import (
    DurationAdjustment,
    FieldUpdates,
    SyncField,
    TaskFields,
    apply_duration_adjustment,
    sync_task_fields,
    validate_task_dates,
)

__all__ = [
    # Core dataclasses
    "DatedTask",
    "DateSpan",
    "TaskNode",
    "AssignedAllocation",
    "ConstraintCheck",
    "ConstraintViolation",
    "CascadeUpdate",
    "CascadeResult",
    "CycleReport",
    "ScheduleStatus",
    "CriticalPathTask",
    "CriticalPathResult",
    "ProjectBuffer",
    "BufferStatus",
    "TargetStatus",
    # Configuration
    "SchedulingConfig",
    # Date calculation
    "TaskDateCalculator",
    "ParentSpans",
    "calculate_task_dates",
    "organize_hierarchy",
    "get_all_descendants",
    "calculate_date_range",
    # Constraints
    "ConstraintEngine",
    "check_task_constraints",
    "audit_conflicts",
    # Cascade and cycles
    "cascade_from",
    "recalculate_cascade",
    "find_cycles_reachable_from",
    "detect_cycles",
    "would_create_cycle",
    # Critical path
    "calculate_critical_path",
    # Buffer and WBS
    "calculate_project_buffer",
    "projected_end_date",
    "describe_buffer",
    "recalculate_wbs_codes",
    "next_wbs_code",
    "is_valid_wbs_code",
    "wbs_level",
    # Field synchronisation
    "SyncField",
    "DurationAdjustment",
    "TaskFields",
    "FieldUpdates",
    "sync_task_fields",
    "apply_duration_adjustment",
    "validate_task_dates",
    # Batch edits
    "PendingChanges",
    "TaskPatch",
    # High-level service
    "SchedulingService",
]
