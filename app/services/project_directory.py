"""Which projects an employee works on.

Deployments that carry the ``project_assignments`` table answer from explicit
assignments. Older deployments only have timesheets, so the directory falls
back to the projects an employee has logged time against. The capability is
detected from the live schema once per call, never guessed from failures.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import inspect, select
from sqlalchemy.orm import Session

from app.errors import NotFoundError
from app.models import Employee, Project, ProjectAssignment, Timesheet

ASSIGNMENTS_TABLE = "project_assignments"
SOURCE_ASSIGNMENT = "assignment"
SOURCE_TIMESHEET = "timesheet"


@dataclass(frozen=True)
class ProjectDirectoryCapabilities:
    has_assignments: bool

    @property
    def source(self) -> str:
        return SOURCE_ASSIGNMENT if self.has_assignments else SOURCE_TIMESHEET


@dataclass(frozen=True)
class EmployeeProject:
    project_id: int
    project_name: str
    is_active: bool
    source: str


def detect_capabilities(db: Session) -> ProjectDirectoryCapabilities:
    inspector = inspect(db.get_bind())
    return ProjectDirectoryCapabilities(has_assignments=bool(inspector.has_table(ASSIGNMENTS_TABLE)))


def _from_assignments(db: Session, *, employee_id: int, include_removed: bool) -> list[EmployeeProject]:
    stmt = (
        select(Project)
        .join(ProjectAssignment, ProjectAssignment.project_id == Project.id)
        .where(ProjectAssignment.employee_id == employee_id)
    )
    if not include_removed:
        stmt = stmt.where(ProjectAssignment.removed_at.is_(None))
    projects = db.scalars(stmt.order_by(Project.name.asc(), Project.id.asc())).unique().all()
    return [
        EmployeeProject(
            project_id=project.id,
            project_name=project.name,
            is_active=bool(project.is_active),
            source=SOURCE_ASSIGNMENT,
        )
        for project in projects
    ]


def _from_timesheets(db: Session, *, employee_id: int) -> list[EmployeeProject]:
    project_ids = select(Timesheet.project_id).where(
        Timesheet.staff_id == employee_id,
        Timesheet.project_id.is_not(None),
    )
    projects = db.scalars(
        select(Project).where(Project.id.in_(project_ids)).order_by(Project.name.asc(), Project.id.asc())
    ).all()
    return [
        EmployeeProject(
            project_id=project.id,
            project_name=project.name,
            is_active=bool(project.is_active),
            source=SOURCE_TIMESHEET,
        )
        for project in projects
    ]


def resolve_employee_projects(
    db: Session,
    *,
    employee_id: int,
    include_removed: bool = False,
    capabilities: ProjectDirectoryCapabilities | None = None,
) -> list[EmployeeProject]:
    if db.get(Employee, employee_id) is None:
        raise NotFoundError("Employee not found.")
    if capabilities is None:
        capabilities = detect_capabilities(db)
    if capabilities.has_assignments:
        return _from_assignments(db, employee_id=employee_id, include_removed=include_removed)
    return _from_timesheets(db, employee_id=employee_id)
