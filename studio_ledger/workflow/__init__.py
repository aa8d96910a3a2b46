"""Kanban workflow rules, project edits and revisions."""

from studio_ledger.workflow.kanban import (
    EDITING_SUB_STATUSES,
    PRINTING_SUB_STATUSES,
    PROJECT_PROGRESS,
    SUB_STATUS_OPTIONS,
    move_lead,
    move_project,
    progress_for_status,
    set_sub_status,
)
from studio_ledger.workflow.project_edits import (
    ProjectEdit,
    add_revision,
    apply_project_edit,
    team_payment_changes,
    team_payment_id,
    update_revision,
)

__all__ = [
    "EDITING_SUB_STATUSES",
    "PRINTING_SUB_STATUSES",
    "PROJECT_PROGRESS",
    "SUB_STATUS_OPTIONS",
    "move_lead",
    "move_project",
    "progress_for_status",
    "set_sub_status",
    "ProjectEdit",
    "add_revision",
    "apply_project_edit",
    "team_payment_changes",
    "team_payment_id",
    "update_revision",
]
