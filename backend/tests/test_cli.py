"""
CLI command tests.
"""

from sales_ingest.models import SalesChannel

from conftest import ORG_ID, TEAM_ID, generic_csv


def _invoke(app, *args):
    return app.test_cli_runner().invoke(args=[str(a) for a in args])


class TestUploadCommands:
    def test_submit_prints_file_table(self, app, db_session, tmp_path, business_day):
        report = tmp_path / "day.csv"
        report.write_bytes(generic_csv(business_day))
        broken = tmp_path / "notes.csv"
        broken.write_bytes(b"Notes,hello\n")

        result = _invoke(app, "uploads", "submit", report, broken, "--org-id", ORG_ID, "--team-id", TEAM_ID)

        assert result.exit_code == 0
        assert "PASS Batch" in result.output
        assert "Processed 1 file; 1 file could not be read" in result.output
        assert "day.csv" in result.output
        assert "staged #" in result.output

    def test_submit_rejects_unknown_format(self, app, db_session, tmp_path, business_day):
        report = tmp_path / "day.csv"
        report.write_bytes(generic_csv(business_day))
        result = _invoke(
            app, "uploads", "submit", report, "--org-id", ORG_ID, "--team-id", TEAM_ID, "--format", "abacus"
        )
        assert "FAIL Error" in result.output

    def test_status_and_staged(self, app, db_session, tmp_path, business_day):
        report = tmp_path / "day.csv"
        report.write_bytes(generic_csv(business_day))
        _invoke(app, "uploads", "submit", report, "--org-id", ORG_ID, "--team-id", TEAM_ID)
        batch_id = app.test_client().get(
            "/api/sales-uploads/batches", headers={"X-Organization-Id": str(ORG_ID)}
        ).get_json()["batches"][0]["id"]

        status = _invoke(app, "uploads", "status", batch_id, "--org-id", ORG_ID)
        assert "[completed]" in status.output

        staged = _invoke(app, "uploads", "staged", batch_id, "--org-id", ORG_ID)
        assert "gross=5744.76" in staged.output
        assert "INFO" in staged.output

        missing = _invoke(app, "uploads", "status", batch_id, "--org-id", 99)
        assert "FAIL Error" in missing.output


class TestChannelCommands:
    def test_add_and_list(self, app, db_session):
        result = _invoke(
            app, "channels", "add", "--org-id", ORG_ID, "--name", "DoorDash", "--rate", "0.2", "--alias", "EXT DoorDash"
        )
        assert "PASS Created channel: DoorDash" in result.output
        channel = db_session.query(SalesChannel).filter_by(org_id=ORG_ID).one()
        assert channel.aliases == ["EXT DoorDash"]

        listed = _invoke(app, "channels", "list", "--org-id", ORG_ID)
        assert "DoorDash" in listed.output
        assert "EXT DoorDash" in listed.output

    def test_rate_or_fee_required(self, app, db_session):
        result = _invoke(app, "channels", "add", "--org-id", ORG_ID, "--name", "Nope")
        assert "FAIL Error" in result.output

    def test_empty_list(self, app, db_session):
        assert "No channels found." in _invoke(app, "channels", "list", "--org-id", ORG_ID).output
