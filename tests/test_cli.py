"""
Tests for the command-line front end.

``SeoDashboard`` is patched in ``seo_dashboard.cli`` with one backed by the
``fake_api`` fixture, so commands run end to end without a backend.
"""

from unittest.mock import patch

import pytest

from seo_dashboard.cli import _format_table, build_parser, main
from seo_dashboard.client import NotFoundError, ValidationError
from seo_dashboard.dashboard import SeoDashboard


@pytest.fixture
def run_cli(fake_api):
    """Run ``main(argv)`` against the fake API; returns the exit code."""

    def _run(*argv):
        with patch("seo_dashboard.cli.SeoDashboard", side_effect=lambda config=None: SeoDashboard(api=fake_api)):
            return main(list(argv))

    return _run


# ===================================================================
# Helpers and parser
# ===================================================================

class TestFormatTable:

    @pytest.mark.unit
    def test_empty(self):
        assert _format_table(["A"], []) == "(no data)"

    @pytest.mark.unit
    def test_alignment_and_truncation(self):
        out = _format_table(["ID", "Name"], [["1", "x" * 80], ["22", None]], max_col=10)
        lines = out.splitlines()
        assert lines[0] == "ID | Name      "
        assert lines[1] == "---+-----------"
        assert lines[2] == "1  | xxxxxxx..."
        assert lines[3] == "22 |           "


class TestParser:

    @pytest.mark.unit
    def test_global_options(self):
        args = build_parser().parse_args(["--base-url", "http://api", "-v", "projects", "list"])
        assert args.base_url == "http://api"
        assert args.verbose is True
        assert args.limit == 100

    @pytest.mark.unit
    def test_links_competitors_repeatable(self):
        args = build_parser().parse_args(
            ["links", "overlap", "example.com", "--competitor", "a.com", "--competitor", "b.com"]
        )
        assert args.competitor == ["a.com", "b.com"]

    @pytest.mark.unit
    def test_no_command_is_usage_error(self, capsys):
        assert main([]) == 2
        assert main(["projects"]) == 2


# ===================================================================
# Commands
# ===================================================================

class TestCommands:

    @pytest.mark.unit
    def test_projects_list(self, run_cli, fake_api, project_payload, capsys):
        fake_api.get.return_value = {"data": [project_payload], "count": 1}

        assert run_cli("projects", "list") == 0

        out = capsys.readouterr().out
        assert "Projects (1 of 1)" in out
        assert "https://www.example.com/blog" in out
        assert "Not started" in out
        fake_api.close.assert_awaited_once()

    @pytest.mark.unit
    def test_projects_create_rejects_bad_url(self, run_cli, fake_api, capsys):
        code = run_cli("projects", "create", "--name", "Blog", "--seed-url", "example.com")

        assert code == 1
        assert "seed_url: Must be a valid URL" in capsys.readouterr().err
        fake_api.post.assert_not_awaited()

    @pytest.mark.unit
    def test_backend_validation_errors_listed(self, run_cli, fake_api, capsys):
        fake_api.post.side_effect = ValidationError(
            "Validation failed",
            status_code=422,
            response_body={"detail": [{"loc": ["body", "name"], "msg": "already taken"}]},
        )

        assert run_cli("projects", "create", "--name", "Blog", "--seed-url", "https://a.com") == 1
        assert "name: already taken" in capsys.readouterr().err

    @pytest.mark.unit
    def test_not_found_exits_1(self, run_cli, fake_api, capsys):
        fake_api.get.side_effect = NotFoundError("Project not found", status_code=404)

        assert run_cli("projects", "show", "missing") == 1
        assert "Project not found" in capsys.readouterr().err

    @pytest.mark.unit
    def test_serp_list_shows_rank_and_change(self, run_cli, fake_api, keyword_payload, capsys):
        fake_api.get.return_value = {"data": [keyword_payload()], "count": 1}

        assert run_cli("serp", "list", "p1", "--delta-convention", "previous_minus_current") == 0

        out = capsys.readouterr().out
        assert "#4" in out
        assert "+2" in out
        assert "success" in out

    @pytest.mark.unit
    def test_serp_refresh_all_reports_failure(self, run_cli, fake_api, keyword_payload, capsys):
        fake_api.get.return_value = {"data": [keyword_payload("k1"), keyword_payload("k2")], "count": 2}
        fake_api.post.side_effect = [keyword_payload("k1"), NotFoundError("gone", status_code=404)]

        assert run_cli("serp", "refresh", "p1") == 1
        out = capsys.readouterr().out
        assert "Refreshed 1/2 keyword(s)" in out
        assert "k2: gone" in out

    @pytest.mark.unit
    def test_audit_start_and_watch(self, run_cli, fake_api, audit_payload, audit_stats_payload, capsys):
        fake_api.post.return_value = audit_payload("queued")
        fake_api.get.side_effect = [
            audit_payload("crawling"),
            audit_payload("completed", finished_at="2026-01-05T15:02:05Z", stats=audit_stats_payload),
        ]

        assert run_cli("audits", "start", "p1", "--watch", "--interval", "0") == 0

        out = capsys.readouterr().out
        assert "Queued audit a1" in out
        assert "[Crawling ...] 40%" in out
        assert "Completed in 2m 5s" in out
        assert "100 pages, 12 issues" in out

    @pytest.mark.unit
    def test_links_overlap_rejects_bad_competitor(self, run_cli, fake_api, capsys):
        code = run_cli("links", "overlap", "example.com", "--competitor", "not a domain")

        assert code == 1
        assert "competitor" in capsys.readouterr().err
        fake_api.get.assert_not_awaited()

    @pytest.mark.unit
    def test_traffic_import_csv(self, run_cli, fake_api, traffic_csv, capsys):
        fake_api.post.return_value = {"message": "ok", "rows_imported": 2}

        assert run_cli("traffic", "import-csv", "p1", str(traffic_csv)) == 0
        assert "Imported 2 row(s)" in capsys.readouterr().out

    @pytest.mark.unit
    def test_traffic_import_non_utf8_csv_still_uploads(self, run_cli, fake_api, tmp_path, capsys):
        """A Latin-1 export cannot be header-checked locally but is still sent."""
        latin = tmp_path / "latin.csv"
        latin.write_bytes(b"date,caf\xe9\n2026-01-01,1\n")
        fake_api.post.return_value = {"message": "ok", "rows_imported": 1}

        assert run_cli("traffic", "import-csv", "p1", str(latin)) == 0
        assert "Imported 1 row(s)" in capsys.readouterr().out
        fake_api.post.assert_awaited_once()

    @pytest.mark.unit
    def test_traffic_import_rejects_non_csv(self, run_cli, tmp_path, capsys):
        other = tmp_path / "data.xlsx"
        other.write_text("x")

        assert run_cli("traffic", "import-csv", "p1", str(other)) == 1
        assert "Please select a CSV file" in capsys.readouterr().err

    @pytest.mark.unit
    def test_ads_campaigns_totals(self, run_cli, fake_api, campaigns_payload, capsys):
        fake_api.get.return_value = campaigns_payload

        assert run_cli("ads", "campaigns", "p1") == 0

        out = capsys.readouterr().out
        assert "Campaigns (last 30 days) (2 of 2)" in out
        assert "$100.00 spent" in out
        assert "CTR 5.00%" in out
        assert "avg CPC $0.50" in out
