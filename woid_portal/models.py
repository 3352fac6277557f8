# woid_portal/models.py
# Defines the standard data classes (models) for the portal.

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from .utils import parse_report_details


def to_millis(value: Any) -> Optional[float]:
    """
    Normalizes a timestamp column to epoch milliseconds.
    The backend stores creation times as epoch-ms numbers, but some
    columns come back as DATETIME values; naive datetimes are taken as UTC.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp() * 1000
    return float(value)


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class PortalUser:
    user_id: str
    token_identifier: str
    email: Optional[str] = None
    name: Optional[str] = None
    organization_ids: Tuple[str, ...] = ()

    @property
    def organization_id(self) -> Optional[str]:
        """The organization the portal works against (the first membership)."""
        return self.organization_ids[0] if self.organization_ids else None

    @property
    def display_name(self) -> str:
        return self.name or self.email or "User"


@dataclass(frozen=True)
class Project:
    project_id: str
    name: str
    organization_id: Optional[str] = None
    completing_team_id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict) -> "Project":
        return cls(
            project_id=str(row['ProjectID']),
            name=row.get('Name') or "",
            organization_id=_text(row.get('OrganizationID')),
            completing_team_id=_text(row.get('CompletingTeamID')),
        )


@dataclass(frozen=True)
class TaskForce:
    task_force_id: str
    name: str

    @classmethod
    def from_row(cls, row: Dict) -> "TaskForce":
        return cls(task_force_id=str(row['TaskForceID']), name=row.get('Name') or "")


@dataclass(frozen=True)
class WorkOrderAssignment:
    address: str
    work_order_id: str
    project_id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict) -> "WorkOrderAssignment":
        return cls(
            address=row['Address'],
            work_order_id=str(row['WorkOrderID']),
            project_id=_text(row.get('ProjectID')),
        )


@dataclass(frozen=True)
class TeamAssignment:
    """One task force's assignment to a WOID. Status is free-form text."""
    work_order_id: str
    task_force_id: Optional[str]
    task_force_name: Optional[str]
    status: Optional[str] = None
    completion_date: Optional[float] = None
    last_updated: Optional[float] = None

    @classmethod
    def from_row(cls, row: Dict) -> "TeamAssignment":
        return cls(
            work_order_id=str(row['WorkOrderID']),
            task_force_id=_text(row.get('TaskForceID')),
            task_force_name=_text(row.get('TaskForceName')),
            status=_text(row.get('Status')),
            completion_date=to_millis(row.get('CompletionDate')),
            last_updated=to_millis(row.get('LastUpdated')),
        )


@dataclass(frozen=True)
class TeamGroup:
    work_order_id: str
    teams: Tuple[TeamAssignment, ...] = ()


@dataclass(frozen=True)
class PortalFile:
    file_id: str
    name: str
    url: Optional[str] = None
    file_type: Optional[str] = None
    creation_time: Optional[float] = None
    work_order_id: Optional[str] = None
    daily_report_id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict) -> "PortalFile":
        return cls(
            file_id=str(row['FileID']),
            name=row.get('Name') or "",
            url=_text(row.get('GoogleUrl')),
            file_type=_text(row.get('FileType')),
            creation_time=to_millis(row.get('CreationTime')),
            work_order_id=_text(row.get('WorkOrderID')),
            daily_report_id=_text(row.get('DailyReportID')),
        )


@dataclass(frozen=True)
class DailyReport:
    report_id: str
    work_order_id: str
    creation_time: float
    notes: Optional[str] = None
    comment: Optional[str] = None
    completion_status: Optional[str] = None
    task_order_id: Optional[str] = None
    task_force_id: Optional[str] = None
    date: Optional[float] = None
    files: Tuple[PortalFile, ...] = ()
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def text(self) -> Optional[str]:
        return self.notes or self.comment

    @classmethod
    def from_row(cls, row: Dict, files: Tuple[PortalFile, ...] = ()) -> "DailyReport":
        return cls(
            report_id=str(row['DailyReportID']),
            work_order_id=str(row['WorkOrderID']),
            creation_time=to_millis(row['CreationTime']),
            notes=_text(row.get('Notes')),
            comment=_text(row.get('Comment')),
            completion_status=_text(row.get('CompletionStatus')),
            task_order_id=_text(row.get('TaskOrderID')),
            task_force_id=_text(row.get('TaskForceID')),
            date=to_millis(row.get('ReportDate')),
            files=files,
            details=parse_report_details(row.get('Details')),
        )


@dataclass(frozen=True)
class ReportGroup:
    work_order_id: str
    reports: Tuple[DailyReport, ...] = ()


@dataclass(frozen=True)
class TicketUpdate:
    ticket_id: str
    utility_company: str
    status: str
    creation_time: float
    email_subject: Optional[str] = None
    email_from: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict) -> "TicketUpdate":
        return cls(
            ticket_id=str(row['TicketID']),
            utility_company=row.get('UtilityCompany') or "Unknown",
            status=row.get('Status') or "",
            creation_time=to_millis(row['CreationTime']),
            email_subject=_text(row.get('EmailSubject')),
            email_from=_text(row.get('EmailFrom')),
        )


@dataclass(frozen=True)
class Ticket:
    ticket_id: str
    creation_date: Optional[float] = None
    updates: Tuple[TicketUpdate, ...] = ()
    work_order_ids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AddressHistorySummary:
    total_teams: int = 0
    total_files: int = 0


@dataclass(frozen=True)
class AddressHistory:
    """Everything the address history page shows for one address in one project."""
    address: str
    project_id: str
    woid_assignments: Tuple[WorkOrderAssignment, ...] = ()
    task_force_assignments: Tuple[TeamGroup, ...] = ()
    daily_reports: Tuple[ReportGroup, ...] = ()
    tickets: Tuple[Ticket, ...] = ()
    files: Tuple[PortalFile, ...] = ()
    summary: AddressHistorySummary = AddressHistorySummary()


@dataclass(frozen=True)
class WoidMatch:
    woid: str
    address: str
    teams: Tuple[TeamAssignment, ...] = ()


@dataclass(frozen=True)
class TicketMatch:
    ticket_id: str
    assigned_date: Optional[float] = None
    woids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AddressSearchResult:
    woids: Tuple[WoidMatch, ...] = ()
    tickets: Tuple[TicketMatch, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.woids and not self.tickets


@dataclass
class UploadResult:
    created: int = 0
    updated: int = 0
    errors: list = field(default_factory=list)
