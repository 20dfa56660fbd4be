# Overview: Flask API routes for stock adjustments; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_actor
from ..errors import LedgerError
from ..services import adjustment_service
from ..validation import optional_int, require_object


adjustments_bp = Blueprint("stock_adjustments", __name__, url_prefix="/api/stock-adjustments")


@adjustments_bp.get("")
def list_adjustments_route():
    try:
        page = optional_int(request.args.get("page"), "page", default=1, minimum=1)
        limit = optional_int(request.args.get("limit"), "limit", default=10, minimum=1, maximum=100)
        adjustments, total = adjustment_service.list_adjustments(
            store_id=optional_int(request.args.get("store_id"), "store_id"),
            adjustment_type=request.args.get("adjustment_type") or None,
            reason=request.args.get("reason") or None,
            status=request.args.get("status") or None,
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            page=page,
            limit=limit,
        )
        return jsonify({
            "adjustments": [a.to_dict() for a in adjustments],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": (total + limit - 1) // limit,
            },
        }), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list stock adjustments")
        return jsonify({"error": "Internal server error"}), 500


@adjustments_bp.post("")
@require_actor
def create_adjustment_route():
    """
    Request body:
    {
        "product_id": 1, "store_id": 1,
        "old_quantity": 44, "new_quantity": 50,
        "reason": "PHYSICAL_COUNT", "notes": "..."
    }

    Returns:
        201: adjustment with its item
        404: unknown product or store
        409: stock no longer equals old_quantity
    """
    try:
        data = require_object(request.get_json(silent=True))
        adjustment = adjustment_service.apply_adjustment(
            data.get("product_id"),
            data.get("store_id"),
            data.get("old_quantity"),
            data.get("new_quantity"),
            g.actor_id,
            reason=data.get("reason"),
            notes=data.get("notes"),
            adjustment_date=data.get("adjustment_date"),
        )
        return jsonify({"adjustment": adjustment.to_dict()}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create stock adjustment")
        return jsonify({"error": "Internal server error"}), 500


@adjustments_bp.get("/<int:adjustment_id>")
def get_adjustment_route(adjustment_id: int):
    adjustment = adjustment_service.get_adjustment(adjustment_id)
    if not adjustment:
        return jsonify({"error": "Stock adjustment not found"}), 404
    return jsonify({"adjustment": adjustment.to_dict()}), 200


@adjustments_bp.post("/<int:adjustment_id>/approve")
@require_actor
def approve_adjustment_route(adjustment_id: int):
    try:
        adjustment = adjustment_service.approve_adjustment(adjustment_id, g.actor_id)
        return jsonify({"adjustment": adjustment.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to approve stock adjustment")
        return jsonify({"error": "Internal server error"}), 500


@adjustments_bp.post("/<int:adjustment_id>/reject")
@require_actor
def reject_adjustment_route(adjustment_id: int):
    try:
        adjustment = adjustment_service.reject_adjustment(adjustment_id, g.actor_id)
        return jsonify({"adjustment": adjustment.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to reject stock adjustment")
        return jsonify({"error": "Internal server error"}), 500
