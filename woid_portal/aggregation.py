# woid_portal/aggregation.py
# Reshapes the flat records of one address (or one project) into the groupings,
# status classifications, stats and timelines the pages render.
# Everything here is pure: recomputed from scratch on every rerun.

import math
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union
from zoneinfo import ZoneInfo

from .models import (
    DailyReport, PortalFile, ReportGroup, TeamAssignment, TeamGroup, Ticket,
    TicketMatch, TicketUpdate, WoidMatch, WorkOrderAssignment,
)

STATUS_COMPLETE = "complete"
STATUS_VOID = "void"

WOID_COMPLETE = "complete"
WOID_VOID = "void"
WOID_IN_PROGRESS = "in_progress"
WOID_NOT_STARTED = "not_started"

TIMELINE_FILTERS = ("all", "reports", "tickets")
KIND_REPORT = "report"
KIND_TICKET_UPDATE = "ticket_update"

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg", ".bmp")

# English names regardless of LC_TIME, so day keys match Date.toDateString()
WEEKDAY_ABBRS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
MONTH_ABBRS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


# --- Grouping ---

def group_teams_by_woid(
    assignments: Iterable[WorkOrderAssignment],
    team_groups: Iterable[TeamGroup],
) -> Mapping[str, Tuple[TeamAssignment, ...]]:
    """
    Maps every WOID to its team assignments.
    WOIDs known only from the assignment list map to an empty tuple; a WOID
    appearing in several team groups keeps the last group seen.
    """
    woid_teams: Dict[str, Tuple[TeamAssignment, ...]] = {}
    for assignment in assignments:
        woid_teams.setdefault(assignment.work_order_id, ())
    for group in team_groups:
        woid_teams[group.work_order_id] = tuple(group.teams)
    return MappingProxyType(woid_teams)


def group_reports_by_woid(report_groups: Iterable[ReportGroup]) -> Mapping[str, Tuple[DailyReport, ...]]:
    reports: Dict[str, Tuple[DailyReport, ...]] = {}
    for group in report_groups:
        reports[group.work_order_id] = tuple(group.reports)
    return MappingProxyType(reports)


def group_files_by_woid(files: Iterable[PortalFile]) -> Mapping[str, Tuple[PortalFile, ...]]:
    """Buckets files by WOID. Files not tied to a work order are left out."""
    buckets: Dict[str, List[PortalFile]] = {}
    for portal_file in files:
        if not portal_file.work_order_id:
            continue
        buckets.setdefault(portal_file.work_order_id, []).append(portal_file)
    return MappingProxyType({woid: tuple(items) for woid, items in buckets.items()})


# --- Status classification ---

def normalize_status(status: Optional[str]) -> str:
    return str(status).strip().lower() if status is not None else ""


def classify_work_order(statuses: Iterable[Optional[str]]) -> str:
    """
    Classifies a WOID from its team statuses.
    Void dominates; complete needs at least one team and every team complete;
    any other non-empty list (unknown or missing statuses included) is in progress.
    """
    normalized = [normalize_status(status) for status in statuses]
    if any(status == STATUS_VOID for status in normalized):
        return WOID_VOID
    if normalized and all(status == STATUS_COMPLETE for status in normalized):
        return WOID_COMPLETE
    if normalized:
        return WOID_IN_PROGRESS
    return WOID_NOT_STARTED


def classify_teams(teams: Iterable[TeamAssignment]) -> str:
    return classify_work_order(team.status for team in teams)


# --- Aggregate stats ---

@dataclass(frozen=True)
class AddressStats:
    total: int = 0
    complete: int = 0
    void: int = 0
    in_progress: int = 0
    completion_percentage: int = 0


def completion_percentage(complete: int, total: int) -> int:
    """Share of complete WOIDs as a whole percentage, rounding halves up; 0 when there are none."""
    if total <= 0:
        return 0
    return int(math.floor(100 * complete / total + 0.5))


def compute_address_stats(woid_teams: Mapping[str, Sequence[TeamAssignment]]) -> AddressStats:
    """Counts complete / void / in-progress WOIDs. Not-started WOIDs count as in progress."""
    complete = void = in_progress = 0
    for teams in woid_teams.values():
        status = classify_teams(teams)
        if status == WOID_VOID:
            void += 1
        elif status == WOID_COMPLETE:
            complete += 1
        else:
            in_progress += 1

    total = len(woid_teams)
    return AddressStats(
        total=total,
        complete=complete,
        void=void,
        in_progress=in_progress,
        completion_percentage=completion_percentage(complete, total),
    )


# --- Timeline ---

@dataclass(frozen=True)
class TimelineItem:
    kind: str
    date: float
    work_order_id: Optional[str] = None
    ticket_id: Optional[str] = None
    report: Optional[DailyReport] = None
    update: Optional[TicketUpdate] = None


def build_timeline(
    report_groups: Iterable[ReportGroup],
    tickets: Iterable[Ticket],
    timeline_filter: str = "all",
) -> List[TimelineItem]:
    """Merges report and ticket-update events, newest first."""
    items: List[TimelineItem] = []
    if timeline_filter != "tickets":
        for group in report_groups:
            for report in group.reports:
                items.append(TimelineItem(
                    kind=KIND_REPORT,
                    date=report.creation_time,
                    work_order_id=group.work_order_id,
                    report=report,
                ))
    if timeline_filter != "reports":
        for ticket in tickets:
            for update in ticket.updates:
                items.append(TimelineItem(
                    kind=KIND_TICKET_UPDATE,
                    date=update.creation_time,
                    ticket_id=ticket.ticket_id,
                    update=update,
                ))

    items.sort(key=lambda item: item.date, reverse=True)
    return items


def resolve_timezone(tz: Union[str, tzinfo, None]) -> tzinfo:
    if tz is None:
        return timezone.utc
    if isinstance(tz, str):
        return ZoneInfo(tz)
    return tz


def to_local_datetime(timestamp_ms: float, tz: Union[str, tzinfo, None] = None) -> datetime:
    return datetime.fromtimestamp(timestamp_ms / 1000, resolve_timezone(tz))


def day_key(timestamp_ms: float, tz: Union[str, tzinfo, None] = None) -> str:
    """Calendar-day key in Date.toDateString() form, e.g. "Tue Oct 20 2026"."""
    dt = to_local_datetime(timestamp_ms, tz)
    return f"{WEEKDAY_ABBRS[dt.weekday()]} {MONTH_ABBRS[dt.month - 1]} {dt.day:02d} {dt.year}"


def bucket_by_day(
    items: Iterable[TimelineItem],
    tz: Union[str, tzinfo, None] = None,
) -> Mapping[str, Tuple[TimelineItem, ...]]:
    """Groups timeline items by calendar day, keeping their incoming order inside each day."""
    zone = resolve_timezone(tz)
    buckets: Dict[str, List[TimelineItem]] = {}
    for item in items:
        buckets.setdefault(day_key(item.date, zone), []).append(item)
    return MappingProxyType({key: tuple(day_items) for key, day_items in buckets.items()})


# --- Utilities & files ---

def latest_utility_statuses(updates: Iterable[TicketUpdate]) -> Mapping[str, TicketUpdate]:
    """Newest update per utility company on one ticket."""
    latest: Dict[str, TicketUpdate] = {}
    for update in updates:
        existing = latest.get(update.utility_company)
        if existing is None or update.creation_time > existing.creation_time:
            latest[update.utility_company] = update
    return MappingProxyType(latest)


def utility_status_tone(status: Optional[str]) -> str:
    s = normalize_status(status)
    if "clear" in s or "marked" in s:
        return "green"
    if "pending" in s or "wait" in s:
        return "yellow"
    return "gray"


def is_image_file(file_name: Optional[str], file_type: Optional[str] = None) -> bool:
    if file_type and "image" in file_type:
        return True
    return (file_name or "").lower().endswith(IMAGE_EXTENSIONS)


# --- Project view: addresses ---

@dataclass(frozen=True)
class AddressSummary:
    address: str
    woids: Tuple[WoidMatch, ...] = ()
    tickets: Tuple[TicketMatch, ...] = ()
    project_name: str = ""


def _clean(value: Any) -> Any:
    # pandas hands back NaN for empty numeric cells
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


def group_rows_by_address(
    rows: Iterable[Mapping[str, Any]],
    tickets_by_address: Optional[Mapping[str, Sequence[TicketMatch]]] = None,
    project_name: str = "",
) -> List[AddressSummary]:
    """
    Folds flat (address, WOID, team) rows into one summary per address.
    Rows from a left join carry no team columns for WOIDs without teams;
    those WOIDs are kept with an empty team list.
    """
    tickets_by_address = tickets_by_address or {}
    addresses: Dict[str, Dict[str, List[TeamAssignment]]] = {}
    for raw in rows:
        row = {key: _clean(value) for key, value in raw.items()}
        address = row['Address']
        woid = str(row['WorkOrderID'])
        teams = addresses.setdefault(address, {}).setdefault(woid, [])
        if row.get('TaskForceID') is None and row.get('TaskForceName') is None:
            continue
        teams.append(TeamAssignment.from_row(row))

    return [
        AddressSummary(
            address=address,
            woids=tuple(
                WoidMatch(woid=woid, address=address, teams=tuple(teams))
                for woid, teams in woids.items()
            ),
            tickets=tuple(tickets_by_address.get(address, ())),
            project_name=project_name,
        )
        for address, woids in addresses.items()
    ]


def address_has_void(woids: Iterable[WoidMatch]) -> bool:
    return any(
        normalize_status(team.status) == STATUS_VOID
        for woid in woids
        for team in woid.teams
    )


def is_address_complete(woids: Iterable[WoidMatch], completing_team_id: Optional[str]) -> bool:
    """An address is complete once the project's completing team reports complete on any of its WOIDs."""
    if not completing_team_id:
        return False
    return any(
        team.task_force_id == completing_team_id and normalize_status(team.status) == STATUS_COMPLETE
        for woid in woids
        for team in woid.teams
    )


def address_row_tone(woids: Sequence[WoidMatch], completing_team_id: Optional[str]) -> str:
    if address_has_void(woids):
        return "void"
    if is_address_complete(woids, completing_team_id):
        return "complete"
    return "default"
