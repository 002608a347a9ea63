"""
HTTP API tests for uploads, review, commit and channels.
"""

import io
import json
from decimal import Decimal

from conftest import ORG_ID, OTHER_ORG_ID, TEAM_ID, generic_csv, org_headers


def _upload(client, *files, headers=None, **form):
    data = {"team_id": TEAM_ID, "wait": "true", **form}
    data["files"] = [(io.BytesIO(content), name) for name, content in files]
    return client.post(
        "/api/sales-uploads/batches",
        data=data,
        content_type="multipart/form-data",
        headers=headers or org_headers(),
    )


def _staged(client, batch_id):
    response = client.get(f"/api/sales-uploads/batches/{batch_id}/staged", headers=org_headers())
    assert response.status_code == 200
    return response.get_json()["staged"]


class TestContext:
    def test_org_header_required(self, client, db_session):
        response = client.get("/api/sales-uploads/batches")
        assert response.status_code == 400
        assert "X-Organization-Id" in response.get_json()["error"]

    def test_org_header_must_be_integer(self, client, db_session):
        response = client.get("/api/sales-uploads/batches", headers={"X-Organization-Id": "acme"})
        assert response.status_code == 400

    def test_health(self, client, db_session):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.get_json()["checks"]["database"]["status"] == "healthy"


class TestUploadRoutes:
    def test_upload_and_review_flow(self, client, db_session, business_day):
        response = _upload(client, ("day.csv", generic_csv(business_day)))
        assert response.status_code == 201
        body = response.get_json()
        batch_id = body["batch_id"]
        assert body["batch"]["status"] == "completed"
        assert body["batch"]["files"][0]["detected_format"] == "generic"
        assert body["message"] == "Processed 1 file, ready for review"

        [staged] = _staged(client, batch_id)
        assert staged["status"] == "pending"
        assert staged["merged_data"]["gross_sales"] == "5744.76"

        response = client.patch(
            f"/api/sales-uploads/staged/{staged['id']}",
            json={"corrections": {"location": "Main St"}, "expected_version": staged["version_id"]},
            headers=org_headers(),
        )
        assert response.status_code == 200
        edited = response.get_json()["staged"]
        assert edited["merged_data"]["location"] == "Main St"
        assert edited["extracted_data"]["location"] is None
        assert edited["reviewed_by"] == "reviewer-1"

        response = client.post(f"/api/sales-uploads/batches/{batch_id}/approve-eligible", headers=org_headers())
        assert response.get_json()["approved"] == [staged["id"]]

        response = client.post(
            "/api/sales-uploads/commit", json={"staged_ids": [staged["id"]]}, headers=org_headers()
        )
        assert response.status_code == 200
        report = response.get_json()
        assert report["committed"] == 1
        assert report["message"] == "1 committed"

        response = client.get(
            f"/api/sales-uploads/existing?date={business_day.isoformat()}&team_id={TEAM_ID}",
            headers=org_headers(),
        )
        existing = response.get_json()
        assert existing["exists"] is True
        assert existing["existing_record"]["location"] == "Main St"

    def test_async_upload_accepted(self, client, db_session, business_day):
        from sales_ingest.services.batch_coordinator import wait_for_batch

        response = _upload(client, ("day.csv", generic_csv(business_day)), wait="false")
        assert response.status_code == 202
        batch_id = response.get_json()["batch_id"]
        wait_for_batch(batch_id, timeout=30)
        db_session.expire_all()

        response = client.get(f"/api/sales-uploads/batches/{batch_id}", headers=org_headers())
        assert response.get_json()["batch"]["status"] == "completed"

    def test_upload_needs_files_and_team(self, client, db_session, business_day):
        response = client.post(
            "/api/sales-uploads/batches",
            data={"team_id": TEAM_ID},
            content_type="multipart/form-data",
            headers=org_headers(),
        )
        assert response.status_code == 400
        response = _upload(client, ("day.csv", generic_csv(business_day)), team_id="")
        assert response.status_code == 400

    def test_bad_date_and_channel_sales(self, client, db_session, business_day):
        assert _upload(client, ("day.csv", generic_csv(business_day)), date="01/14/2026").status_code == 400
        assert _upload(client, ("day.csv", generic_csv(business_day)), channel_sales="{").status_code == 400

    def test_channel_sales_join_staged_destinations(self, client, db_session, business_day):
        sales = json.dumps([{"name": "DoorDash", "amount": "300.00", "order_count": 12}])
        body = _upload(client, ("day.csv", generic_csv(business_day)), channel_sales=sales).get_json()
        [staged] = _staged(client, body["batch_id"])
        assert staged["merged_data"]["destinations"][0]["name"] == "DoorDash"

    def test_batch_limit_is_a_bad_request(self, client, db_session, app, business_day):
        original = app.config["INGEST_MAX_FILES"]
        app.config["INGEST_MAX_FILES"] = 1
        try:
            response = _upload(
                client,
                ("a.csv", generic_csv(business_day)),
                ("b.csv", generic_csv(business_day)),
            )
        finally:
            app.config["INGEST_MAX_FILES"] = original
        assert response.status_code == 400

    def test_batches_are_tenant_scoped(self, client, db_session, business_day):
        batch_id = _upload(client, ("day.csv", generic_csv(business_day))).get_json()["batch_id"]
        other = org_headers(OTHER_ORG_ID)
        assert client.get(f"/api/sales-uploads/batches/{batch_id}", headers=other).status_code == 404
        assert client.get(f"/api/sales-uploads/batches/{batch_id}/staged", headers=other).status_code == 404
        listed = client.get("/api/sales-uploads/batches", headers=other).get_json()["batches"]
        assert listed == []
        listed = client.get("/api/sales-uploads/batches", headers=org_headers(ORG_ID)).get_json()["batches"]
        assert [b["id"] for b in listed] == [batch_id]

    def test_cancel_finished_batch_conflicts(self, client, db_session, business_day):
        batch_id = _upload(client, ("day.csv", generic_csv(business_day))).get_json()["batch_id"]
        response = client.post(f"/api/sales-uploads/batches/{batch_id}/cancel", headers=org_headers())
        assert response.status_code == 409

    def test_stale_edit_conflicts(self, client, db_session, business_day):
        batch_id = _upload(client, ("day.csv", generic_csv(business_day))).get_json()["batch_id"]
        [staged] = _staged(client, batch_id)
        url = f"/api/sales-uploads/staged/{staged['id']}"
        assert client.patch(url, json={"status": "approved"}, headers=org_headers()).status_code == 200
        response = client.patch(
            url,
            json={"corrections": {"gross_sales": "1.00"}, "expected_version": staged["version_id"]},
            headers=org_headers(),
        )
        assert response.status_code == 409

    def test_invalid_correction_is_a_bad_request(self, client, db_session, business_day):
        batch_id = _upload(client, ("day.csv", generic_csv(business_day))).get_json()["batch_id"]
        [staged] = _staged(client, batch_id)
        url = f"/api/sales-uploads/staged/{staged['id']}"
        assert client.patch(url, json={"corrections": {"nope": 1}}, headers=org_headers()).status_code == 400
        assert client.patch(url, json={"corrections": ["nope"]}, headers=org_headers()).status_code == 400
        assert client.patch("/api/sales-uploads/staged/999999", json={}, headers=org_headers()).status_code == 404

    def test_non_finite_correction_is_a_bad_request(self, client, db_session, business_day):
        batch_id = _upload(client, ("day.csv", generic_csv(business_day))).get_json()["batch_id"]
        [staged] = _staged(client, batch_id)
        response = client.patch(
            f"/api/sales-uploads/staged/{staged['id']}",
            json={"corrections": {"gross_sales": "NaN"}},
            headers=org_headers(),
        )
        assert response.status_code == 400
        assert "not an amount" in response.get_json()["error"]

    def test_validation_logs_and_resolve(self, client, db_session, business_day):
        batch_id = _upload(client, ("day.csv", generic_csv(business_day))).get_json()["batch_id"]
        logs = client.get(
            f"/api/sales-uploads/batches/{batch_id}/validation-logs", headers=org_headers()
        ).get_json()["logs"]
        assert logs
        log_id = logs[0]["id"]

        response = client.post(f"/api/sales-uploads/validation-logs/{log_id}/resolve", headers=org_headers())
        assert response.get_json()["log"]["is_resolved"] is True

        open_logs = client.get(
            f"/api/sales-uploads/batches/{batch_id}/validation-logs?include_resolved=false",
            headers=org_headers(),
        ).get_json()["logs"]
        assert log_id not in [log["id"] for log in open_logs]

        response = client.post(
            f"/api/sales-uploads/validation-logs/{log_id}/resolve", headers=org_headers(OTHER_ORG_ID)
        )
        assert response.status_code == 404

    def test_commit_body_checked(self, client, db_session):
        url = "/api/sales-uploads/commit"
        assert client.post(url, json={}, headers=org_headers()).status_code == 400
        assert client.post(url, json={"staged_ids": ["x"]}, headers=org_headers()).status_code == 400

    def test_existing_needs_params(self, client, db_session):
        assert client.get("/api/sales-uploads/existing?team_id=store-1", headers=org_headers()).status_code == 400
        assert client.get("/api/sales-uploads/existing?date=2026-01-14", headers=org_headers()).status_code == 400


class TestChannelRoutes:
    def test_create_and_list(self, client, db_session):
        response = client.post(
            "/api/sales-channels",
            json={"name": "DoorDash", "commission_rate": 0.2, "aliases": ["DD Delivery"]},
            headers=org_headers(),
        )
        assert response.status_code == 201
        assert response.get_json()["channel"]["aliases"] == ["DD Delivery"]

        names = [c["name"] for c in client.get("/api/sales-channels", headers=org_headers()).get_json()["channels"]]
        assert names == ["DoorDash"]
        other = client.get("/api/sales-channels", headers=org_headers(OTHER_ORG_ID)).get_json()["channels"]
        assert other == []

    def test_invalid_channels(self, client, db_session):
        url = "/api/sales-channels"
        assert client.post(url, json={"name": "X", "commission_rate": 20}, headers=org_headers()).status_code == 400
        assert client.post(
            url, json={"name": "Y", "commission_type": "flat_fee"}, headers=org_headers()
        ).status_code == 400
        assert client.post(url, json={"name": "Z", "aliases": "z"}, headers=org_headers()).status_code == 400

        assert client.post(url, json={"name": "Dup", "commission_rate": 0.1}, headers=org_headers()).status_code == 201
        assert client.post(url, json={"name": "Dup", "commission_rate": 0.1}, headers=org_headers()).status_code == 400

    def test_breakdown_for_committed_record(self, client, db_session, business_day):
        client.post("/api/sales-channels", json={"name": "DoorDash", "commission_rate": "0.20"}, headers=org_headers())
        sales = json.dumps([{"name": "EXT DoorDash", "amount": "646.32", "order_count": 20}])
        batch_id = _upload(client, ("day.csv", generic_csv(business_day)), channel_sales=sales).get_json()["batch_id"]
        [staged] = _staged(client, batch_id)
        client.patch(f"/api/sales-uploads/staged/{staged['id']}", json={"status": "approved"}, headers=org_headers())
        report = client.post(
            "/api/sales-uploads/commit", json={"staged_ids": [staged["id"]]}, headers=org_headers()
        ).get_json()
        outcome = report["outcomes"][0]
        assert Decimal(outcome["channels"][0]["commission_fees"]) == Decimal("129.264")

        response = client.get(
            f"/api/sales-channels/records/{outcome['sales_record_id']}/breakdown", headers=org_headers()
        )
        assert response.status_code == 200
        [row] = response.get_json()["channels"]
        assert row["destination_name"] == "EXT DoorDash"
        assert row["channel_name"] == "DoorDash"

        response = client.get("/api/sales-channels/records/999999/breakdown", headers=org_headers())
        assert response.status_code == 404
