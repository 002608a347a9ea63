# Overview: Flask API routes for the sales channel registry and channel breakdowns.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_context
from ..errors import IngestError
from ..extensions import db
from ..pipeline.settings import IngestSettings
from ..services import channel_service


channels_bp = Blueprint("sales_channels", __name__, url_prefix="/api/sales-channels")


@channels_bp.get("")
@require_context
def list_channels_route():
    include_inactive = request.args.get("all", "false").lower() == "true"
    channels = channel_service.list_channels(g.org_id, active_only=not include_inactive)
    return jsonify({"channels": [c.to_dict() for c in channels]})


@channels_bp.post("")
@require_context
def create_channel_route():
    """
    Request body:
    {
        "name": str,
        "commission_type": "percentage" | "flat_fee",
        "commission_rate": number,   // fraction, 0.20 = 20%
        "flat_fee_amount": number,
        "aliases": [str]
    }
    """
    data = request.get_json(silent=True) or {}
    aliases = data.get("aliases") or []
    if not isinstance(aliases, list):
        return jsonify({"error": "aliases must be a list"}), 400
    try:
        channel = channel_service.create_channel(
            org_id=g.org_id,
            name=data.get("name"),
            commission_type=data.get("commission_type", "percentage"),
            commission_rate=data.get("commission_rate"),
            flat_fee_amount=data.get("flat_fee_amount"),
            aliases=aliases,
        )
        return jsonify({"channel": channel.to_dict()}), 201
    except IngestError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), e.status_code


@channels_bp.get("/records/<int:record_id>/breakdown")
@require_context
def record_breakdown_route(record_id: int):
    try:
        breakdown = channel_service.channel_breakdown(
            record_id, g.org_id, IngestSettings.from_config(current_app.config)
        )
        return jsonify({"record_id": record_id, "channels": [b.to_dict() for b in breakdown]})
    except IngestError as e:
        return jsonify({"error": str(e)}), e.status_code
