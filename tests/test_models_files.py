from datetime import datetime, timedelta, timezone

import pytest
import requests

from woid_portal import files
from woid_portal.files import FileFetchError, fetch_file_bytes, guess_mime_type
from woid_portal.models import DailyReport, PortalFile, PortalUser, Project, TicketUpdate, to_millis


# --- models ---

def test_to_millis_normalizes_timestamps():
    assert to_millis(None) is None
    assert to_millis(1700000000000) == 1700000000000.0
    assert to_millis(datetime(1970, 1, 1, 0, 0, 1)) == 1000.0
    eastern = timezone(timedelta(hours=-5))
    assert to_millis(datetime(1969, 12, 31, 19, 0, 2, tzinfo=eastern)) == 2000.0


def test_daily_report_from_row():
    row = {
        "DailyReportID": 7, "WorkOrderID": 123, "CreationTime": 1000, "Notes": "  ",
        "Comment": "Backfilled trench", "CompletionStatus": "complete", "TaskOrderID": None,
        "TaskForceID": 4, "ReportDate": None, "Details": '{"depth": 3}',
    }
    attached = (PortalFile("F1", "trench.jpg"),)

    report = DailyReport.from_row(row, files=attached)

    assert report.report_id == "7"
    assert report.work_order_id == "123"
    assert report.text == "Backfilled trench"
    assert report.details == {"depth": 3}
    assert report.task_force_id == "4"
    assert report.task_order_id is None
    assert report.files == attached


def test_file_url_comes_from_google_url_column():
    portal_file = PortalFile.from_row({
        "FileID": 1, "Name": "site.png", "GoogleUrl": "https://storage.example.com/site.png",
        "FileType": "image/png", "CreationTime": 5, "WorkOrderID": None, "DailyReportID": 9,
    })
    assert portal_file.url == "https://storage.example.com/site.png"
    assert portal_file.work_order_id is None
    assert portal_file.daily_report_id == "9"


def test_project_and_ticket_update_from_row():
    project = Project.from_row({"ProjectID": 3, "Name": "Route 9", "OrganizationID": "org1", "CompletingTeamID": None})
    update = TicketUpdate.from_row({"TicketID": 55, "UtilityCompany": None, "Status": None, "CreationTime": 10})

    assert (project.project_id, project.completing_team_id) == ("3", None)
    assert (update.ticket_id, update.utility_company, update.status) == ("55", "Unknown", "")


def test_portal_user_properties():
    user = PortalUser("1", "iss|sub", email="ann@example.com", organization_ids=("org1", "org2"))
    assert user.organization_id == "org1"
    assert user.display_name == "ann@example.com"
    assert PortalUser("2", "iss|sub2").organization_id is None
    assert PortalUser("2", "iss|sub2").display_name == "User"


# --- files ---

class FakeResponse:
    def __init__(self, content=b"", status_code=200, headers=None):
        self.content = content
        self.status_code = status_code
        self.headers = headers or {}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error")


def test_fetch_file_bytes_returns_content_and_type(monkeypatch):
    calls = []

    def fake_get(url, timeout):
        calls.append((url, timeout))
        return FakeResponse(b"\x89PNG", headers={"Content-Type": "image/png"})

    monkeypatch.setattr(files.requests, "get", fake_get)

    assert fetch_file_bytes("https://storage.example.com/a.png") == (b"\x89PNG", "image/png")
    assert calls == [("https://storage.example.com/a.png", 30)]


def test_http_error_becomes_fetch_error(monkeypatch):
    monkeypatch.setattr(files.requests, "get", lambda url, timeout: FakeResponse(status_code=404))
    with pytest.raises(FileFetchError, match="404"):
        fetch_file_bytes("https://storage.example.com/missing.png")


def test_connection_error_becomes_fetch_error(monkeypatch):
    def fake_get(url, timeout):
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(files.requests, "get", fake_get)
    with pytest.raises(FileFetchError, match="connection refused"):
        fetch_file_bytes("https://storage.example.com/a.png", timeout=5)


def test_missing_url_is_rejected():
    with pytest.raises(FileFetchError, match="no download link"):
        fetch_file_bytes("")


@pytest.mark.parametrize("name, file_type, expected", [
    ("site.png", None, "image/png"),
    ("scan.bin", "image/jpeg", "image/jpeg"),
    ("report.pdf", "pdf", "application/pdf"),
    ("mystery", None, "application/octet-stream"),
])
def test_guess_mime_type(name, file_type, expected):
    assert guess_mime_type(name, file_type) == expected
