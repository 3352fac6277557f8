import pytds
import pytest

from woid_portal.dal_portal import PortalDAL, _like_pattern
from woid_portal.models import WorkOrderAssignment

TEAM_COLUMNS = ("WorkOrderID", "TaskForceID", "TaskForceName", "Status", "CompletionDate", "LastUpdated")
REPORT_COLUMNS = (
    "DailyReportID", "WorkOrderID", "TaskOrderID", "TaskForceID", "CompletionStatus",
    "ReportDate", "Notes", "Comment", "Details", "CreationTime",
)
FILE_COLUMNS = ("FileID", "Name", "GoogleUrl", "FileType", "CreationTime", "WorkOrderID", "DailyReportID")
UPDATE_COLUMNS = ("TicketID", "UtilityCompany", "Status", "CreationTime", "EmailSubject", "EmailFrom")


def _responder(*routes):
    """First route whose marker appears in the SQL answers it."""
    def respond(sql, params):
        for marker, result in routes:
            if marker in sql:
                return result(params) if callable(result) else result
        return None
    return respond


def test_dal_reads_connection_settings(config_path, fake_db):
    state = fake_db(_responder(("dbo.TaskForces", (("TaskForceID", "Name"), [(4, "Crew A")]))))
    dal = PortalDAL(config_path)

    assert [(t.task_force_id, t.name) for t in dal.get_task_forces("org1")] == [("4", "Crew A")]

    assert (dal.server, dal.port, dal.database) == ("db.example.com", 14330, "WoidPortal")
    assert state["connect_kwargs"][0] == {
        "server": "db.example.com", "port": 14330, "database": "WoidPortal",
        "user": "portal", "password": "s3cret", "autocommit": True,
    }
    assert state["connections"][0].closed


def test_missing_db_section_fails_fast(tmp_path):
    path = tmp_path / "config.ini"
    path.write_text("[portal]\ntimezone = UTC\n")
    with pytest.raises(KeyError):
        PortalDAL(str(path))


def test_get_user_with_organizations(config_path, fake_db):
    fake_db(_responder(
        ("dbo.Users", (("UserID", "TokenIdentifier", "Email", "Name"),
                       [(1, "https://clerk.example.com|u1", "ann@example.com", "Ann")])),
        ("dbo.UserOrganizations", (("OrganizationID",), [("org1",), ("org2",)])),
    ))

    user = PortalDAL(config_path).get_user("https://clerk.example.com|u1")

    assert user.user_id == "1"
    assert user.display_name == "Ann"
    assert user.organization_ids == ("org1", "org2")


def test_get_user_unknown_token(config_path, fake_db):
    state = fake_db(_responder(("dbo.Users", (("UserID", "TokenIdentifier", "Email", "Name"), []))))

    assert PortalDAL(config_path).get_user("nobody") is None
    assert len(state["connections"][0].executed) == 1


def test_get_projects_for_organization(config_path, fake_db):
    state = fake_db(_responder(
        ("dbo.Projects", (("ProjectID", "Name", "OrganizationID", "CompletingTeamID"),
                          [(1, "Route 9", "org1", 4), (2, "Elm Street", "org1", None)])),
    ))

    projects = PortalDAL(config_path).get_projects_for_organization("org1")

    assert [(p.project_id, p.name, p.completing_team_id) for p in projects] == [
        ("1", "Route 9", "4"), ("2", "Elm Street", None),
    ]
    assert state["connections"][0].executed[0][1] == ("org1",)


def test_address_history_is_grouped_by_woid(config_path, fake_db):
    state = fake_db(_responder(
        ("dbo.TicketUpdates", (UPDATE_COLUMNS, [
            ("TK1", "Dominion", "Pending", 600, None, None),
            ("TK1", "Dominion", "Clear", 700, "Ticket TK1 cleared", "noreply@811.example.com"),
        ])),
        ("dbo.Tickets", (("TicketID", "CreationDate"), [("TK1", 500)])),
        ("dbo.TaskForceAssignments", (TEAM_COLUMNS, [
            ("W1", "T1", "Crew A", "complete", 900, 900),
            ("W1", "T2", "Crew B", "incomplete", None, 800),
            ("W2", "T1", "Crew A", "complete", 950, 950),
        ])),
        ("dbo.DailyReports", (REPORT_COLUMNS, [
            (11, "W1", None, "T1", "complete", None, "Paved", None, '{"depth": 3}', 1000),
            (12, "W2", None, "T1", None, None, None, "Hand dig", None, 2000),
        ])),
        ("dbo.Files", (FILE_COLUMNS, [
            (21, "trench.jpg", "https://storage.example.com/trench.jpg", "image/jpeg", 1100, "W1", 11),
            (22, "permit.pdf", "https://storage.example.com/permit.pdf", "application/pdf", 1200, "W2", None),
            (23, "site.png", "https://storage.example.com/site.png", "image/png", 1300, None, None),
        ])),
        ("dbo.WoidAssignments", (("Address", "WorkOrderID", "ProjectID"), [
            ("1 Main St", "W1", "P1"), ("1 Main St", "W2", "P1"), ("1 Main St", "W3", "P1"),
        ])),
    ))

    history = PortalDAL(config_path).get_address_history("1 Main St", "P1")

    assert len(state["connections"]) == 1
    assert all(params == ("P1", "1 Main St") for _, params in state["connections"][0].executed)
    assert [a.work_order_id for a in history.woid_assignments] == ["W1", "W2", "W3"]
    assert {g.work_order_id: len(g.teams) for g in history.task_force_assignments} == {"W1": 2, "W2": 1}

    reports = {g.work_order_id: g.reports for g in history.daily_reports}
    assert [r.report_id for r in reports["W1"]] == ["11"]
    assert [f.file_id for f in reports["W1"][0].files] == ["21"]
    assert reports["W1"][0].details == {"depth": 3}
    assert reports["W2"][0].text == "Hand dig"
    assert reports["W2"][0].files == ()

    assert [t.ticket_id for t in history.tickets] == ["TK1"]
    assert [u.status for u in history.tickets[0].updates] == ["Pending", "Clear"]
    assert len(history.files) == 3
    assert (history.summary.total_teams, history.summary.total_files) == (2, 3)


def test_search_matches_substring_and_collapses_ticket_rows(config_path, fake_db):
    state = fake_db(_responder(
        ("dbo.TaskForceAssignments", (TEAM_COLUMNS, [("W1", "T1", "Crew A", "incomplete", None, 800)])),
        ("dbo.Tickets", (("TicketID", "CreationDate", "WorkOrderID"), [
            ("TK1", 500, "W1"), ("TK1", 500, "W2"), ("TK2", 400, None),
        ])),
        ("dbo.WoidAssignments", (("Address", "WorkOrderID"), [("1 Main St", "W1"), ("1 Main St", "W2")])),
    ))

    result = PortalDAL(config_path).search_by_address("main", "P1")

    assert not result.is_empty
    assert [(m.woid, len(m.teams)) for m in result.woids] == [("W1", 1), ("W2", 0)]
    assert [(t.ticket_id, t.woids) for t in result.tickets] == [("TK1", ("W1", "W2")), ("TK2", ())]
    assert all(params == ("P1", "%main%") for _, params in state["connections"][0].executed)


def test_like_pattern_escapes_wildcards():
    assert _like_pattern("50%_off [A]") == "%50\\%\\_off \\[A]%"


def test_updates_by_ticket_optionally_filters_address(config_path, fake_db):
    state = fake_db(_responder(("dbo.TicketUpdates", (UPDATE_COLUMNS, [("TK1", "Verizon", "Marked", 700, None, None)]))))
    dal = PortalDAL(config_path)

    updates = dal.get_updates_by_ticket("TK1", "1 Main St")
    dal.get_updates_by_ticket("TK1")

    assert [u.utility_company for u in updates] == ["Verizon"]
    with_address, without_address = (conn.executed[0] for conn in state["connections"])
    assert with_address[1] == ("TK1", "1 Main St")
    assert "AND Address = %s" in with_address[0]
    assert without_address[1] == ("TK1",)


def test_project_tickets_are_keyed_by_address(config_path, fake_db):
    fake_db(_responder(("dbo.Tickets", (("Address", "TicketID", "CreationDate", "WorkOrderID"), [
        ("1 Main St", "TK1", 500, "W1"), ("2 Oak Ave", "TK2", 400, None), ("1 Main St", "TK3", 300, "W2"),
    ]))))

    tickets = PortalDAL(config_path).get_project_tickets("P1")

    assert [t.ticket_id for t in tickets["1 Main St"]] == ["TK1", "TK3"]
    assert tickets["2 Oak Ave"][0].woids == ()


def test_bulk_insert_counts_created_updated_and_errors(config_path, fake_db):
    existing = {"W2": "1 Main St", "W3": "Old Address"}

    def select_address(params):
        _, woid = params
        return ("Address",), ([(existing[woid],)] if woid in existing else [])

    def insert(params):
        if params[2] == "W4":
            raise pytds.Error("duplicate key")
        return None

    state = fake_db(_responder(
        ("SELECT Address FROM dbo.WoidAssignments", select_address),
        ("INSERT INTO dbo.WoidAssignments", insert),
    ))
    assignments = [
        WorkOrderAssignment("1 Main St", "W1"),
        WorkOrderAssignment("1 Main St", "W2"),
        WorkOrderAssignment("3 Pine Rd", "W3"),
        WorkOrderAssignment("4 Elm St", "W4"),
        WorkOrderAssignment("5 Birch Ln", "W5"),
    ]

    result = PortalDAL(config_path).bulk_insert_assignments(assignments, "P1", "T9")

    assert (result.created, result.updated) == (2, 1)
    assert len(result.errors) == 1
    assert result.errors[0].startswith("Row 4 (W4): ")
    assert "duplicate key" in result.errors[0]

    connection = state["connections"][0]
    assert state["connect_kwargs"][0]["autocommit"] is False
    assert connection.commits == 1
    first_sql, first_params = connection.executed[0]
    assert first_sql.startswith("UPDATE dbo.Projects SET CompletingTeamID")
    assert first_params == ("T9", "P1")
    updates = [params for sql, params in connection.executed if sql.startswith("UPDATE dbo.WoidAssignments")]
    assert updates == [("3 Pine Rd", "P1", "W3")]
