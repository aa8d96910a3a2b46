"""
Project Editing and Revisions

Pure functions over a Project; the caller owns the store and the commit.

An edit touches only operational fields (names, dates, location, team,
notes, delivery link). Pricing, payments and the board column are
out of reach here: money changes go through transactions and column
changes through the kanban moves.
"""

from datetime import date, datetime
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from studio_ledger.errors import ValidationError
from studio_ledger.models.entities import (
    AssignedTeamMember,
    Client,
    Project,
    Revision,
    RevisionStatus,
    TeamProjectPayment,
)
from studio_ledger.store.entity_store import ChangeSet
from studio_ledger.store.interface import NotFoundError


class ProjectEdit(BaseModel):
    """
    Fields the project form may overwrite.

    Only fields explicitly set are applied; an explicit None clears an
    optional field.
    """

    project_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    client_id: Optional[str] = None
    project_type: Optional[str] = Field(default=None, max_length=100)
    event_date: Optional[date] = None
    deadline_date: Optional[date] = None
    location: Optional[str] = Field(default=None, max_length=300)
    team: Optional[list[AssignedTeamMember]] = None
    notes: Optional[str] = Field(default=None, max_length=2000)
    final_drive_link: Optional[str] = Field(default=None, max_length=500)


_REQUIRED = ("project_name", "client_id", "event_date", "team")


def apply_project_edit(
    project: Project,
    edit: ProjectEdit,
    client: Optional[Client] = None,
) -> Project:
    """
    Return the project with the edit applied.

    client must be given when the edit moves the project to another
    client, so the denormalized name follows.

    Raises:
        ValidationError: A required field is cleared, or client is missing
    """
    patch = edit.model_dump(exclude_unset=True)
    for name in _REQUIRED:
        if name in patch and patch[name] is None:
            raise ValidationError(f"{name} cannot be cleared", field=name)
    for name in ("project_type", "location", "final_drive_link"):
        if name in patch and patch[name] is None:
            patch[name] = ""

    if "client_id" in patch:
        if client is None or client.id != patch["client_id"]:
            raise ValidationError("Client does not match client_id", field="client_id")
        patch["client_name"] = client.name

    return Project.model_validate({**project.model_dump(), **patch})


def team_payment_id(project_id: str, member_id: str) -> str:
    return f"TPP-{project_id}-{member_id}"


def team_payment_changes(
    project: Project,
    existing: Iterable[TeamProjectPayment],
) -> ChangeSet:
    """
    Bring a project's TeamProjectPayment rows in line with its team.

    Members who stay keep their payment status; their fee, reward, name
    and date follow the project. New members get an UNPAID row, and
    rows of members no longer on the team are removed.
    """
    current = {p.id: p for p in existing}
    changes = ChangeSet()

    wanted = set()
    for seat in project.team:
        payment_id = team_payment_id(project.id, seat.member_id)
        wanted.add(payment_id)
        fields = {
            "team_member_name": seat.name,
            "event_date": project.event_date,
            "fee": seat.fee,
            "reward": seat.reward,
        }
        if payment_id in current:
            updated = current[payment_id].model_copy(update=fields)
            if updated != current[payment_id]:
                changes.replace("team_project_payments", updated)
        else:
            changes.insert("team_project_payments", TeamProjectPayment(
                id=payment_id,
                project_id=project.id,
                team_member_id=seat.member_id,
                **fields,
            ))

    for payment_id in current:
        if payment_id not in wanted:
            changes.remove("team_project_payments", payment_id)
    return changes


# =============================================================================
# REVISIONS
# =============================================================================

def add_revision(
    project: Project,
    freelancer_id: str,
    admin_notes: str,
    deadline: Optional[date],
    now: Optional[datetime] = None,
) -> tuple[Project, Revision]:
    """
    Append a PENDING revision for a freelancer on the project's team.

    Raises:
        ValidationError: Notes or deadline missing, or the freelancer is not on the team
    """
    if not admin_notes or not admin_notes.strip():
        raise ValidationError("Revision notes are required", field="admin_notes")
    if deadline is None:
        raise ValidationError("Revision deadline is required", field="deadline")
    if freelancer_id not in {seat.member_id for seat in project.team}:
        raise ValidationError(
            f"{freelancer_id} is not on the team of {project.project_name}",
            field="freelancer_id",
        )

    revision = Revision(
        created_at=now or datetime.utcnow(),
        admin_notes=admin_notes,
        deadline=deadline,
        freelancer_id=freelancer_id,
    )
    updated = project.model_copy(update={"revisions": [*project.revisions, revision]})
    return updated, revision


def update_revision(
    project: Project,
    revision_id: str,
    freelancer_notes: Optional[str],
    drive_link: Optional[str],
    status: RevisionStatus,
    now: Optional[datetime] = None,
) -> tuple[Project, Revision]:
    """
    Record the freelancer's answer to a revision.

    Marking it COMPLETED stamps completed_at.

    Raises:
        NotFoundError: The project has no such revision
    """
    for idx, revision in enumerate(project.revisions):
        if revision.id == revision_id:
            break
    else:
        raise NotFoundError("revisions", revision_id)

    completed_at = revision.completed_at
    if status == RevisionStatus.COMPLETED:
        completed_at = now or datetime.utcnow()

    answered = Revision.model_validate({
        **revision.model_dump(),
        "freelancer_notes": freelancer_notes,
        "drive_link": drive_link,
        "status": status,
        "completed_at": completed_at,
    })
    revisions = list(project.revisions)
    revisions[idx] = answered
    return project.model_copy(update={"revisions": revisions}), answered
