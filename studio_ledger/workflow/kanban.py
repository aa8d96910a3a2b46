"""
Kanban Status Transitions

Leads and projects move across boards. This module holds the rules for
those moves; it returns updated copies and never writes anywhere.

Leads: free moves between NEW, DISCUSSION, FOLLOW_UP and REJECTED.
CONVERTED is reachable only through the conversion pipeline, and a lead
that is CONVERTED or REJECTED stays where it is.

Projects: every transition is allowed, backwards included. The target
status alone decides the progress percentage.
"""

from typing import Optional

from studio_ledger.errors import (
    ConversionRequiredError,
    InvalidTransitionError,
    ValidationError,
)
from studio_ledger.models.entities import Lead, LeadStatus, Project, ProjectStatus


PROJECT_PROGRESS: dict[ProjectStatus, int] = {
    ProjectStatus.PREPARATION: 10,
    ProjectStatus.PENDING: 0,
    ProjectStatus.CONFIRMED: 25,
    ProjectStatus.EDITING: 70,
    ProjectStatus.PRINTING: 90,
    ProjectStatus.SHIPPED: 95,
    ProjectStatus.COMPLETED: 100,
    ProjectStatus.CANCELLED: 0,
}

EDITING_SUB_STATUSES = ["Editing Video", "Editing Album", "Editing Foto"]
PRINTING_SUB_STATUSES = ["Cetak Bingkai", "Cetak Album", "Flashdisk", "Lainnya"]

SUB_STATUS_OPTIONS: dict[ProjectStatus, list[str]] = {
    ProjectStatus.EDITING: EDITING_SUB_STATUSES,
    ProjectStatus.PRINTING: PRINTING_SUB_STATUSES,
}


def progress_for_status(status: ProjectStatus) -> int:
    return PROJECT_PROGRESS[status]


def move_lead(lead: Lead, new_status: LeadStatus) -> Lead:
    """
    Move a lead to another kanban column.

    Raises:
        ConversionRequiredError: new_status is CONVERTED
        InvalidTransitionError: the lead is already CONVERTED or REJECTED
    """
    if new_status == lead.status:
        return lead
    if new_status == LeadStatus.CONVERTED:
        raise ConversionRequiredError(
            "A lead becomes CONVERTED only through the conversion form"
        )
    if lead.is_terminal:
        raise InvalidTransitionError(
            f"Lead {lead.id} is {lead.status.value} and cannot move to {new_status.value}"
        )
    return lead.model_copy(update={"status": new_status})


def move_project(project: Project, new_status: ProjectStatus) -> Project:
    """
    Move a project to another kanban column.

    Progress follows PROJECT_PROGRESS. sub_status survives only when the
    target is EDITING or PRINTING and the value belongs to that column;
    shipping_details survive only on SHIPPED.
    A move to the current column only repairs a drifted progress value.
    """
    if new_status == project.status:
        progress = progress_for_status(new_status)
        if project.progress == progress:
            return project
        return project.model_copy(update={"progress": progress})

    sub_status = project.sub_status
    if sub_status not in SUB_STATUS_OPTIONS.get(new_status, []):
        sub_status = ""

    shipping_details = project.shipping_details if new_status == ProjectStatus.SHIPPED else ""

    return project.model_copy(update={
        "status": new_status,
        "progress": progress_for_status(new_status),
        "sub_status": sub_status,
        "shipping_details": shipping_details,
    })


def set_sub_status(project: Project, sub_status: Optional[str]) -> Project:
    """
    Pick a sub-status within the project's current column.

    Raises:
        ValidationError: the column has no sub-statuses, or the value is not one of them
    """
    if not sub_status:
        return project.model_copy(update={"sub_status": ""})

    options = SUB_STATUS_OPTIONS.get(project.status)
    if options is None:
        raise ValidationError(
            f"Projects in {project.status.value} have no sub-status",
            field="sub_status",
        )
    if sub_status not in options:
        raise ValidationError(
            f"Unknown sub-status {sub_status!r}; expected one of {', '.join(options)}",
            field="sub_status",
        )
    return project.model_copy(update={"sub_status": sub_status})
