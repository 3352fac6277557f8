# woid_portal/dal_portal.py

import logging
import time
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence

import pytds

from .config import DEFAULT_CONFIG_PATH, load_config, server_and_port
from .models import (
    AddressHistory, AddressHistorySummary, AddressSearchResult, DailyReport,
    PortalFile, PortalUser, Project, ReportGroup, TaskForce, TeamAssignment,
    TeamGroup, Ticket, TicketMatch, TicketUpdate, UploadResult, WoidMatch,
    WorkOrderAssignment, to_millis,
)

logger = logging.getLogger(__name__)

# Flat address/WOID/team rows for the project view, read through SQLAlchemy into pandas.
PROJECT_WOID_ROWS_SQL = """
    SELECT
        wa.Address, wa.WorkOrderID,
        tfa.TaskForceID, tf.Name AS TaskForceName,
        tfa.Status, tfa.CompletionDate, tfa.LastUpdated
    FROM dbo.WoidAssignments wa
    LEFT JOIN dbo.TaskForceAssignments tfa
        ON tfa.WorkOrderID = wa.WorkOrderID AND tfa.ProjectID = wa.ProjectID
    LEFT JOIN dbo.TaskForces tf ON tf.TaskForceID = tfa.TaskForceID
    WHERE wa.ProjectID = :project_id
    ORDER BY wa.Address, wa.WorkOrderID, tf.Name;
"""

_TEAM_COLUMNS = """
    tfa.WorkOrderID, tfa.TaskForceID, tf.Name AS TaskForceName,
    tfa.Status, tfa.CompletionDate, tfa.LastUpdated
"""

_REPORT_COLUMNS = """
    dr.DailyReportID, dr.WorkOrderID, dr.TaskOrderID, dr.TaskForceID,
    dr.CompletionStatus, dr.ReportDate, dr.Notes, dr.Comment, dr.Details, dr.CreationTime
"""


def _fetch_dicts(cursor) -> List[Dict]:
    cols = [desc[0] for desc in cursor.description]
    return [dict(zip(cols, row)) for row in cursor.fetchall()]


def _like_pattern(text: str) -> str:
    """Wraps user text for a substring LIKE, escaping the LIKE wildcards."""
    escaped = text.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_').replace('[', '\\[')
    return f"%{escaped}%"


def _group_teams(teams: Iterable[TeamAssignment]) -> List[TeamGroup]:
    grouped: Dict[str, List[TeamAssignment]] = defaultdict(list)
    for team in teams:
        grouped[team.work_order_id].append(team)
    return [TeamGroup(work_order_id=woid, teams=tuple(items)) for woid, items in grouped.items()]


class PortalDAL:
    """Handles all communication with the portal's backend database."""
    def __init__(self, config_path: str = DEFAULT_CONFIG_PATH):
        config = load_config(config_path)
        db_config = config['portal_db']

        self.server, self.port = server_and_port(db_config['server'])
        self.database = db_config['database']
        self.user = db_config['user']
        self.password = db_config['password']

    def _get_connection(self, autocommit: bool = True):
        """Establishes and returns a new database connection."""
        return pytds.connect(
            server=self.server, port=self.port, database=self.database,
            user=self.user, password=self.password,
            autocommit=autocommit
        )

    # --- Users & organizations ---

    def get_user(self, token_identifier: str) -> Optional[PortalUser]:
        """Looks up a portal user by identity-provider token identifier."""
        with self._get_connection() as cnxn:
            cursor = cnxn.cursor()
            cursor.execute(
                "SELECT UserID, TokenIdentifier, Email, Name FROM dbo.Users WHERE TokenIdentifier = %s;",
                (token_identifier,)
            )
            rows = _fetch_dicts(cursor)
            if not rows:
                return None
            user_row = rows[0]
            cursor.execute(
                "SELECT OrganizationID FROM dbo.UserOrganizations WHERE UserID = %s ORDER BY OrganizationID;",
                (user_row['UserID'],)
            )
            organization_ids = tuple(str(row[0]) for row in cursor.fetchall())

        return PortalUser(
            user_id=str(user_row['UserID']),
            token_identifier=user_row['TokenIdentifier'],
            email=user_row.get('Email'),
            name=user_row.get('Name'),
            organization_ids=organization_ids,
        )

    def get_projects_for_organization(self, organization_id: str) -> List[Project]:
        sql = """
            SELECT ProjectID, Name, OrganizationID, CompletingTeamID
            FROM dbo.Projects
            WHERE OrganizationID = %s
            ORDER BY Name;
        """
        with self._get_connection() as cnxn:
            cursor = cnxn.cursor()
            cursor.execute(sql, (organization_id,))
            return [Project.from_row(row) for row in _fetch_dicts(cursor)]

    def get_project(self, project_id: str) -> Optional[Project]:
        sql = "SELECT ProjectID, Name, OrganizationID, CompletingTeamID FROM dbo.Projects WHERE ProjectID = %s;"
        with self._get_connection() as cnxn:
            cursor = cnxn.cursor()
            cursor.execute(sql, (project_id,))
            rows = _fetch_dicts(cursor)
            return Project.from_row(rows[0]) if rows else None

    def get_task_forces(self, organization_id: str) -> List[TaskForce]:
        """Fetches the organization's teams, ordered by name."""
        sql = "SELECT TaskForceID, Name FROM dbo.TaskForces WHERE OrganizationID = %s ORDER BY Name;"
        with self._get_connection() as cnxn:
            cursor = cnxn.cursor()
            cursor.execute(sql, (organization_id,))
            return [TaskForce.from_row(row) for row in _fetch_dicts(cursor)]

    # --- Address history ---

    def get_address_history(self, address: str, project_id: str) -> AddressHistory:
        """
        Loads everything recorded against one address in a project: WOIDs,
        team assignments and daily reports grouped by WOID, tickets with
        their utility updates, and files.
        """
        address_filter = "wa.ProjectID = %s AND wa.Address = %s"
        params = (project_id, address)

        with self._get_connection() as cnxn:
            cursor = cnxn.cursor()

            cursor.execute(
                "SELECT wa.Address, wa.WorkOrderID, wa.ProjectID FROM dbo.WoidAssignments wa "
                f"WHERE {address_filter} ORDER BY wa.WorkOrderID;",
                params
            )
            assignments = [WorkOrderAssignment.from_row(row) for row in _fetch_dicts(cursor)]

            cursor.execute(
                f"SELECT {_TEAM_COLUMNS} FROM dbo.TaskForceAssignments tfa "
                "JOIN dbo.WoidAssignments wa ON wa.WorkOrderID = tfa.WorkOrderID AND wa.ProjectID = tfa.ProjectID "
                "LEFT JOIN dbo.TaskForces tf ON tf.TaskForceID = tfa.TaskForceID "
                f"WHERE {address_filter} ORDER BY tfa.WorkOrderID, tf.Name;",
                params
            )
            teams = [TeamAssignment.from_row(row) for row in _fetch_dicts(cursor)]

            cursor.execute(
                "SELECT FileID, Name, GoogleUrl, FileType, CreationTime, WorkOrderID, DailyReportID "
                "FROM dbo.Files WHERE ProjectID = %s AND Address = %s ORDER BY CreationTime DESC;",
                params
            )
            files = [PortalFile.from_row(row) for row in _fetch_dicts(cursor)]

            cursor.execute(
                f"SELECT {_REPORT_COLUMNS} FROM dbo.DailyReports dr "
                "JOIN dbo.WoidAssignments wa ON wa.WorkOrderID = dr.WorkOrderID AND wa.ProjectID = dr.ProjectID "
                f"WHERE {address_filter} ORDER BY dr.WorkOrderID, dr.CreationTime DESC;",
                params
            )
            report_rows = _fetch_dicts(cursor)

            cursor.execute(
                "SELECT TicketID, CreationDate FROM dbo.Tickets "
                "WHERE ProjectID = %s AND Address = %s ORDER BY CreationDate DESC;",
                params
            )
            ticket_rows = _fetch_dicts(cursor)

            cursor.execute(
                "SELECT tu.TicketID, tu.UtilityCompany, tu.Status, tu.CreationTime, tu.EmailSubject, tu.EmailFrom "
                "FROM dbo.TicketUpdates tu JOIN dbo.Tickets t ON t.TicketID = tu.TicketID "
                "WHERE t.ProjectID = %s AND t.Address = %s ORDER BY tu.CreationTime;",
                params
            )
            updates = [TicketUpdate.from_row(row) for row in _fetch_dicts(cursor)]

        files_by_report: Dict[str, List[PortalFile]] = defaultdict(list)
        for portal_file in files:
            if portal_file.daily_report_id:
                files_by_report[portal_file.daily_report_id].append(portal_file)

        reports_by_woid: Dict[str, List[DailyReport]] = defaultdict(list)
        for row in report_rows:
            report_files = tuple(files_by_report.get(str(row['DailyReportID']), ()))
            report = DailyReport.from_row(row, files=report_files)
            reports_by_woid[report.work_order_id].append(report)

        updates_by_ticket: Dict[str, List[TicketUpdate]] = defaultdict(list)
        for update in updates:
            updates_by_ticket[update.ticket_id].append(update)

        tickets = tuple(
            Ticket(
                ticket_id=str(row['TicketID']),
                creation_date=to_millis(row.get('CreationDate')),
                updates=tuple(updates_by_ticket.get(str(row['TicketID']), ())),
            )
            for row in ticket_rows
        )

        summary = AddressHistorySummary(
            total_teams=len({team.task_force_id or team.task_force_name for team in teams}),
            total_files=len(files),
        )
        logger.info(
            "Loaded history for %r in project %s: %d WOIDs, %d reports, %d tickets, %d files",
            address, project_id, len(assignments), len(report_rows), len(tickets), len(files)
        )
        return AddressHistory(
            address=address,
            project_id=project_id,
            woid_assignments=tuple(assignments),
            task_force_assignments=tuple(_group_teams(teams)),
            daily_reports=tuple(
                ReportGroup(work_order_id=woid, reports=tuple(reports))
                for woid, reports in reports_by_woid.items()
            ),
            tickets=tickets,
            files=tuple(files),
            summary=summary,
        )

    # --- Search ---

    def search_by_address(self, address: str, project_id: str) -> AddressSearchResult:
        """Finds WOIDs (with teams) and tickets whose address contains the search text."""
        params = (project_id, _like_pattern(address))
        with self._get_connection() as cnxn:
            cursor = cnxn.cursor()
            cursor.execute(
                "SELECT Address, WorkOrderID FROM dbo.WoidAssignments "
                "WHERE ProjectID = %s AND Address LIKE %s ESCAPE '\\' ORDER BY Address, WorkOrderID;",
                params
            )
            woid_rows = _fetch_dicts(cursor)

            cursor.execute(
                f"SELECT {_TEAM_COLUMNS} FROM dbo.TaskForceAssignments tfa "
                "JOIN dbo.WoidAssignments wa ON wa.WorkOrderID = tfa.WorkOrderID AND wa.ProjectID = tfa.ProjectID "
                "LEFT JOIN dbo.TaskForces tf ON tf.TaskForceID = tfa.TaskForceID "
                "WHERE wa.ProjectID = %s AND wa.Address LIKE %s ESCAPE '\\' ORDER BY tfa.WorkOrderID, tf.Name;",
                params
            )
            teams = [TeamAssignment.from_row(row) for row in _fetch_dicts(cursor)]

            cursor.execute(
                "SELECT t.TicketID, t.CreationDate, tw.WorkOrderID FROM dbo.Tickets t "
                "LEFT JOIN dbo.TicketWoids tw ON tw.TicketID = t.TicketID "
                "WHERE t.ProjectID = %s AND t.Address LIKE %s ESCAPE '\\' ORDER BY t.CreationDate DESC, tw.WorkOrderID;",
                params
            )
            ticket_rows = _fetch_dicts(cursor)

        teams_by_woid = {group.work_order_id: group.teams for group in _group_teams(teams)}
        woids = tuple(
            WoidMatch(
                woid=str(row['WorkOrderID']),
                address=row['Address'],
                teams=teams_by_woid.get(str(row['WorkOrderID']), ()),
            )
            for row in woid_rows
        )
        return AddressSearchResult(woids=woids, tickets=tuple(self._ticket_matches(ticket_rows)))

    @staticmethod
    def _ticket_matches(ticket_rows: Sequence[Dict]) -> List[TicketMatch]:
        """Collapses ticket/WOID join rows into one TicketMatch per ticket."""
        dates: Dict[str, Optional[float]] = {}
        woids: Dict[str, List[str]] = defaultdict(list)
        for row in ticket_rows:
            ticket_id = str(row['TicketID'])
            dates.setdefault(ticket_id, to_millis(row.get('CreationDate')))
            if row.get('WorkOrderID') is not None:
                woids[ticket_id].append(str(row['WorkOrderID']))
        return [
            TicketMatch(ticket_id=ticket_id, assigned_date=assigned, woids=tuple(woids.get(ticket_id, ())))
            for ticket_id, assigned in dates.items()
        ]

    def get_updates_by_ticket(self, ticket_id: str, address: Optional[str] = None) -> List[TicketUpdate]:
        """Fetches a ticket's utility updates, newest first, optionally narrowed to one address."""
        sql = (
            "SELECT TicketID, UtilityCompany, Status, CreationTime, EmailSubject, EmailFrom "
            "FROM dbo.TicketUpdates WHERE TicketID = %s"
        )
        params = [ticket_id]
        if address:
            sql += " AND Address = %s"
            params.append(address)
        sql += " ORDER BY CreationTime DESC;"
        with self._get_connection() as cnxn:
            cursor = cnxn.cursor()
            cursor.execute(sql, tuple(params))
            return [TicketUpdate.from_row(row) for row in _fetch_dicts(cursor)]

    # --- Project view ---

    def get_project_tickets(self, project_id: str) -> Dict[str, List[TicketMatch]]:
        """Tickets of a project keyed by address."""
        sql = """
            SELECT t.Address, t.TicketID, t.CreationDate, tw.WorkOrderID
            FROM dbo.Tickets t
            LEFT JOIN dbo.TicketWoids tw ON tw.TicketID = t.TicketID
            WHERE t.ProjectID = %s
            ORDER BY t.Address, t.CreationDate DESC;
        """
        with self._get_connection() as cnxn:
            cursor = cnxn.cursor()
            cursor.execute(sql, (project_id,))
            rows = _fetch_dicts(cursor)

        rows_by_address: Dict[str, List[Dict]] = defaultdict(list)
        for row in rows:
            rows_by_address[row['Address']].append(row)
        return {address: self._ticket_matches(address_rows) for address, address_rows in rows_by_address.items()}

    def get_daily_reports_by_woid(self, work_order_id: str, project_id: str) -> List[DailyReport]:
        """Fetches every daily report filed against one WOID, latest report date first."""
        sql = (
            f"SELECT {_REPORT_COLUMNS} FROM dbo.DailyReports dr "
            "WHERE dr.WorkOrderID = %s AND dr.ProjectID = %s "
            "ORDER BY dr.ReportDate DESC, dr.CreationTime DESC;"
        )
        with self._get_connection() as cnxn:
            cursor = cnxn.cursor()
            cursor.execute(sql, (work_order_id, project_id))
            return [DailyReport.from_row(row) for row in _fetch_dicts(cursor)]

    # --- Bulk upload ---

    def bulk_insert_assignments(
        self,
        assignments: Sequence[WorkOrderAssignment],
        project_id: str,
        completing_team_id: str,
    ) -> UploadResult:
        """
        Upserts uploaded address/WOID pairs into a project and records the
        project's completing team. A new WOID counts as created, a WOID moved
        to a different address counts as updated; a failing row is reported
        in errors without stopping the rest of the upload.
        """
        result = UploadResult()
        select_sql = "SELECT Address FROM dbo.WoidAssignments WHERE ProjectID = %s AND WorkOrderID = %s;"
        insert_sql = """
            INSERT INTO dbo.WoidAssignments (ProjectID, Address, WorkOrderID, CreationTime)
            VALUES (%s, %s, %s, %s)
        """
        update_sql = "UPDATE dbo.WoidAssignments SET Address = %s WHERE ProjectID = %s AND WorkOrderID = %s;"

        with self._get_connection(autocommit=False) as cnxn:
            cursor = cnxn.cursor()
            cursor.execute(
                "UPDATE dbo.Projects SET CompletingTeamID = %s WHERE ProjectID = %s;",
                (completing_team_id, project_id)
            )
            for row_number, assignment in enumerate(assignments, start=1):
                try:
                    cursor.execute(select_sql, (project_id, assignment.work_order_id))
                    existing = cursor.fetchone()
                    if existing is None:
                        now_ms = int(time.time() * 1000)
                        cursor.execute(insert_sql, (project_id, assignment.address, assignment.work_order_id, now_ms))
                        result.created += 1
                    elif existing[0] != assignment.address:
                        cursor.execute(update_sql, (assignment.address, project_id, assignment.work_order_id))
                        result.updated += 1
                except pytds.Error as e:
                    logger.error("Upload row %d (%s) failed: %s", row_number, assignment.work_order_id, e)
                    result.errors.append(f"Row {row_number} ({assignment.work_order_id}): {e}")
            cnxn.commit()

        logger.info(
            "Bulk upload into project %s: %d created, %d updated, %d errors",
            project_id, result.created, result.updated, len(result.errors)
        )
        return result
