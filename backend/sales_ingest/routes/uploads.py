# Overview: Flask API routes for sales report uploads, staged review and commit; parses input and returns JSON responses.

"""
Sales Upload Routes

Supports PDF, CSV and Excel (.xls/.xlsx) POS reports, many per batch.
"""

import json

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_context
from ..errors import IngestError
from ..extensions import db
from ..pipeline.documents import UploadedFile
from ..pipeline.settings import IngestSettings
from ..services import approval_service, upload_batch_service, upload_messages
from ..services.batch_coordinator import BatchCoordinator, request_cancel
from ..time_utils import parse_iso_date


uploads_bp = Blueprint("sales_uploads", __name__, url_prefix="/api/sales-uploads")


def _settings() -> IngestSettings:
    return IngestSettings.from_config(current_app.config)


def _error(e: IngestError):
    db.session.rollback()
    return jsonify({"error": str(e)}), e.status_code


def _flag(value) -> bool:
    return str(value or "").strip().lower() in {"1", "true", "yes", "on"}


@uploads_bp.post("/batches")
@require_context
def submit_batch_route():
    files = request.files.getlist("files")
    team_id = (request.form.get("team_id") or "").strip()
    if not files:
        return jsonify({"error": "files are required"}), 400
    if not team_id:
        return jsonify({"error": "team_id is required"}), 400

    try:
        business_date = parse_iso_date(request.form.get("date"))
    except ValueError:
        return jsonify({"error": "date must be YYYY-MM-DD"}), 400
    try:
        channel_sales = json.loads(request.form.get("channel_sales") or "[]")
    except ValueError:
        return jsonify({"error": "channel_sales must be a JSON list"}), 400
    if not isinstance(channel_sales, list):
        return jsonify({"error": "channel_sales must be a JSON list"}), 400

    uploads = [UploadedFile(name=f.filename or "upload", data=f.read()) for f in files]
    wait = _flag(request.form.get("wait"))
    try:
        batch_id = BatchCoordinator(_settings()).submit(
            uploads,
            org_id=g.org_id,
            team_id=team_id,
            business_date=business_date,
            forced_format=request.form.get("forced_format"),
            channel_sales=channel_sales,
            actor=g.actor,
            name=request.form.get("name"),
            wait=wait,
        )
    except IngestError as e:
        return _error(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Batch submission failed")
        return jsonify({"error": "Failed to start upload batch"}), 500

    if wait:
        batch = upload_batch_service.get_batch(batch_id, g.org_id)
        return jsonify({
            "batch_id": batch_id,
            "batch": batch.to_dict(include_files=True),
            "message": upload_messages.batch_summary(batch),
        }), 201
    return jsonify({"batch_id": batch_id}), 202


@uploads_bp.get("/batches")
@require_context
def list_batches_route():
    limit = request.args.get("limit", upload_batch_service.DEFAULT_LIST_LIMIT, type=int)
    batches = upload_batch_service.list_batches(g.org_id, limit=max(1, min(limit, 200)))
    return jsonify({"batches": [b.to_dict() for b in batches]})


@uploads_bp.get("/batches/<int:batch_id>")
@require_context
def get_batch_route(batch_id: int):
    try:
        batch = upload_batch_service.get_batch(batch_id, g.org_id)
        return jsonify({
            "batch": batch.to_dict(include_files=True),
            "message": upload_messages.batch_summary(batch),
        })
    except IngestError as e:
        return _error(e)


@uploads_bp.post("/batches/<int:batch_id>/cancel")
@require_context
def cancel_batch_route(batch_id: int):
    try:
        batch = request_cancel(batch_id, g.org_id)
        return jsonify({"batch": batch.to_dict()})
    except IngestError as e:
        return _error(e)


@uploads_bp.get("/batches/<int:batch_id>/staged")
@require_context
def list_staged_route(batch_id: int):
    try:
        staged = upload_batch_service.list_staged(batch_id, g.org_id, status=request.args.get("status"))
        return jsonify({
            "staged": [
                s.to_dict(merged=upload_batch_service.merged_record(s).to_dict())
                for s in staged
            ]
        })
    except IngestError as e:
        return _error(e)


@uploads_bp.get("/batches/<int:batch_id>/validation-logs")
@require_context
def validation_logs_route(batch_id: int):
    include_resolved = request.args.get("include_resolved", "true").lower() != "false"
    try:
        logs = upload_batch_service.get_validation_logs(batch_id, g.org_id, include_resolved=include_resolved)
        return jsonify({"logs": [log.to_dict() for log in logs]})
    except IngestError as e:
        return _error(e)


@uploads_bp.post("/batches/<int:batch_id>/approve-eligible")
@require_context
def approve_eligible_route(batch_id: int):
    try:
        approved = upload_batch_service.approve_eligible(batch_id, g.org_id, actor=g.actor)
        return jsonify({"approved": [s.id for s in approved]})
    except IngestError as e:
        return _error(e)


@uploads_bp.patch("/staged/<int:staged_id>")
@require_context
def update_staged_route(staged_id: int):
    data = request.get_json(silent=True) or {}
    corrections = data.get("corrections")
    if corrections is not None and not isinstance(corrections, dict):
        return jsonify({"error": "corrections must be an object"}), 400

    settings = _settings()
    try:
        staged = upload_batch_service.update_staged(
            staged_id,
            g.org_id,
            corrections=corrections,
            status=data.get("status"),
            expected_version=data.get("expected_version"),
            actor=g.actor,
            rules=settings.rules,
            review_confidence=settings.review_confidence,
        )
        return jsonify({"staged": staged.to_dict(merged=upload_batch_service.merged_record(staged).to_dict())})
    except IngestError as e:
        return _error(e)


@uploads_bp.post("/commit")
@require_context
def commit_route():
    data = request.get_json(silent=True) or {}
    staged_ids = data.get("staged_ids")
    if not isinstance(staged_ids, list) or not staged_ids:
        return jsonify({"error": "staged_ids must be a non-empty list"}), 400
    try:
        staged_ids = [int(s) for s in staged_ids]
    except (TypeError, ValueError):
        return jsonify({"error": "staged_ids must be integers"}), 400

    report = approval_service.approve_and_commit(
        staged_ids,
        org_id=g.org_id,
        replace_existing=bool(data.get("replace_existing", False)),
        actor=g.actor,
        settings=_settings(),
    )
    body = report.to_dict()
    body["message"] = upload_messages.commit_summary(report)
    return jsonify(body), 200


@uploads_bp.get("/existing")
@require_context
def check_existing_route():
    team_id = (request.args.get("team_id") or "").strip()
    if not team_id:
        return jsonify({"error": "team_id is required"}), 400
    try:
        business_date = parse_iso_date(request.args.get("date"))
    except ValueError:
        return jsonify({"error": "date must be YYYY-MM-DD"}), 400
    if business_date is None:
        return jsonify({"error": "date is required"}), 400

    result = approval_service.check_existing(g.org_id, business_date, team_id)
    return jsonify(result.to_dict())


@uploads_bp.post("/validation-logs/<int:log_id>/resolve")
@require_context
def resolve_log_route(log_id: int):
    try:
        log = upload_batch_service.resolve_validation_log(log_id, g.org_id, actor=g.actor)
        return jsonify({"log": log.to_dict()})
    except IngestError as e:
        return _error(e)
