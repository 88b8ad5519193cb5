"""Tests for the reflect CLI."""

from datetime import date, datetime, timedelta, timezone

from typer.testing import CliRunner

from reflect.cli import commands
from reflect.cli.commands import app
from reflect.core.site_audit import AuditFetchError
from reflect.core.spaced_repetition import add_term
from reflect.db import activity_repository
from reflect.db.activity_repository import list_reset_logs
from reflect.db.certifications_repository import list_certifications
from reflect.db.database import init_db
from reflect.db.glossary_repository import get_term
from reflect.db.reflections_repository import list_reflections

runner = CliRunner()

PAGE = """<!DOCTYPE html>
<html lang="en"><head><title>InterpretReflect</title></head>
<body><main><h1>Welcome</h1><img src="a.png"></main></body></html>"""


class TestInitDb:
    def test_creates_database(self, isolated_workspace):
        result = runner.invoke(app, ["init-db"])
        assert result.exit_code == 0, result.output
        assert "Database ready" in result.output
        assert (isolated_workspace / "db" / "reflect.db").exists()


class TestGlossaryCommands:
    """Tests for glossary-add, glossary-list and review."""

    def test_add_and_list(self):
        result = runner.invoke(
            app, ["glossary-add", "Affidavit", "Sworn written statement", "-d", "legal"]
        )
        assert result.exit_code == 0, result.output
        assert "Added: Affidavit" in result.output

        result = runner.invoke(app, ["glossary-list", "-q", "sworn"])
        assert result.exit_code == 0
        assert "Affidavit" in result.output
        assert "1 terms | 0 due | 0 mastered" in result.output

    def test_add_blank_term_fails(self):
        result = runner.invoke(app, ["glossary-add", " ", "definition"])
        assert result.exit_code == 1
        assert "Term is required" in result.output

    def test_list_empty(self):
        result = runner.invoke(app, ["glossary-list"])
        assert result.exit_code == 0
        assert "No terms found." in result.output

    def test_terms_are_per_user(self):
        runner.invoke(app, ["glossary-add", "Triage", "Sorting patients", "--user", "alex"])
        result = runner.invoke(app, ["glossary-list"], env={"REFLECT_USER": "sam"})
        assert "No terms found." in result.output

    def test_review_nothing_due(self):
        result = runner.invoke(app, ["review"])
        assert result.exit_code == 0
        assert "Nothing due today." in result.output

    def test_review_due_term(self):
        init_db()
        term = add_term("local", "Triage", "Sorting patients", today=date.today() - timedelta(days=2))

        result = runner.invoke(app, ["review"], input="\ny\n")
        assert result.exit_code == 0, result.output
        assert "Sorting patients" in result.output
        assert "Done: 1/1 correct" in result.output

        reviewed = get_term("local", term.id)
        assert reviewed.review_count == 1
        assert reviewed.next_review_date == (date.today() + timedelta(days=2)).isoformat()


class TestCertificationCommands:
    """Tests for cert-add and ceus."""

    def test_add_and_show(self):
        expires = (date.today() + timedelta(days=365)).isoformat()
        result = runner.invoke(app, ["cert-add", "NIC", "--expires", expires, "-n", "12345"])
        assert result.exit_code == 0, result.output
        assert "Added certification: NIC" in result.output

        certs = list_certifications("local")
        assert certs[0].cert_number == "12345"

        result = runner.invoke(app, ["ceus"])
        assert result.exit_code == 0
        assert "365 days remaining" in result.output
        assert "Total CEUs: 0" in result.output

    def test_bad_date(self):
        result = runner.invoke(app, ["cert-add", "NIC", "--expires", "next year"])
        assert result.exit_code == 1
        assert "Invalid date" in result.output

    def test_no_certifications(self):
        result = runner.invoke(app, ["ceus"])
        assert result.exit_code == 0
        assert "No certifications yet." in result.output


class TestBreathe:
    """Tests for techniques and breathe."""

    def test_techniques_table(self):
        result = runner.invoke(app, ["techniques"])
        assert result.exit_code == 0
        assert "breathing-practice" in result.output

    def test_full_reset(self):
        result = runner.invoke(
            app,
            ["breathe", "--duration", "30s", "--tick-seconds", "0", "--effectiveness", "5"],
            input="1\n\n\n",
        )
        assert result.exit_code == 0, result.output
        assert "Breathe in..." in result.output
        assert "Practice complete." in result.output
        assert "Reset saved" in result.output

        logs = list_reset_logs("local")
        assert len(logs) == 1
        assert logs[0].duration_seconds == 30
        assert logs[0].effectiveness == 5
        entry = list_reflections("local")[0]
        assert entry.data == {"technique_id": "breathing-practice", "feeling_calmer": "Yes"}

    def test_invalid_choice_reprompts(self):
        result = runner.invoke(
            app,
            ["breathe", "-d", "30s", "--tick-seconds", "0"],
            input="9\n2\n\n\n",
        )
        assert result.exit_code == 0, result.output
        assert "Enter a number 1-3" in result.output
        assert list_reflections("local")[0].data["feeling_calmer"] == "Somewhat"

    def test_last_choice_reused(self):
        runner.invoke(app, ["breathe", "-d", "30s", "-p", "3", "--tick-seconds", "0"], input="\n\n\n")
        result = runner.invoke(app, ["breathe", "--tick-seconds", "0"], input="\n\n\n")
        assert result.exit_code == 0, result.output
        assert "Duration: 0:30 | Pace: 3" in result.output

    def test_unknown_technique(self):
        result = runner.invoke(app, ["breathe", "juggling"])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_bad_effectiveness_not_saved(self):
        result = runner.invoke(
            app,
            ["breathe", "-d", "30s", "--tick-seconds", "0", "--effectiveness", "7"],
            input="\n\n\n",
        )
        assert result.exit_code == 1
        assert list_reset_logs("local") == []


class TestInsightsCommand:
    """Tests for insights and its saved pattern state."""

    def test_empty(self):
        result = runner.invoke(app, ["insights"])
        assert result.exit_code == 0
        assert "Growth insights" in result.output
        assert "No patterns detected yet." in result.output

    def test_repeat_runs_reach_threshold(self, isolated_workspace):
        init_db()
        now = datetime.now(timezone.utc)
        activity_repository.save_emotion_log(
            "local", "anxious", 4, logged_at=(now - timedelta(hours=5)).isoformat()
        )
        activity_repository.save_assignment(
            "local", "legal", 90, occurred_at=(now - timedelta(hours=2)).isoformat()
        )

        first = runner.invoke(app, ["insights"])
        assert first.exit_code == 0, first.output
        assert "No patterns detected yet." in first.output
        assert (isolated_workspace / "data" / "state" / "patterns_v1.json").exists()

        second = runner.invoke(app, ["insights"])
        assert second.exit_code == 0, second.output
        assert "Pre-Court Preparation" in second.output


class TestAuditCommand:
    """Tests for audit with the network call replaced."""

    def test_writes_reports(self, monkeypatch, tmp_path):
        monkeypatch.setattr(commands, "fetch_html", lambda url, retries=None: PAGE)

        result = runner.invoke(
            app, ["audit", "https://example.test/", "--out", str(tmp_path / "reports")]
        )
        assert result.exit_code == 0, result.output
        assert "InterpretReflect Audit Summary" in result.output

        (run_dir,) = (tmp_path / "reports").iterdir()
        assert {p.suffix for p in run_dir.iterdir()} == {".json", ".html", ".txt"}

    def test_fetch_failure(self, monkeypatch):
        def fail(url, retries=None):
            raise AuditFetchError(url, 4, ConnectionError("connection refused"))

        monkeypatch.setattr(commands, "fetch_html", fail)
        result = runner.invoke(app, ["audit", "http://localhost:1/"])
        assert result.exit_code == 1
        assert "connection refused" in result.output
