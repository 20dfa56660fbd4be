# Overview: Flask API routes for returns operations; parses input and returns JSON responses.

# backend/stockledger/routes/returns.py
"""
Return Processing API Routes

DESIGN:
- Create returns, optionally against the original sale
- Approval restocks GOOD items; DAMAGED/DEFECTIVE items are tracked only
- Completion settles the refund of an approved return
- Approved and completed returns cannot be deleted
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_actor
from ..errors import LedgerError
from ..services import return_service
from ..validation import optional_int, require_object


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")

_EDITABLE_FIELDS = ("refund_method", "refund_amount_cents", "reason")


@returns_bp.get("")
def list_returns_route():
    try:
        page = optional_int(request.args.get("page"), "page", default=1, minimum=1)
        limit = optional_int(request.args.get("limit"), "limit", default=10, minimum=1, maximum=100)
        returns, total = return_service.list_returns(
            store_id=optional_int(request.args.get("store_id"), "store_id"),
            status=request.args.get("status") or None,
            sale_id=optional_int(request.args.get("sale_id"), "sale_id"),
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            page=page,
            limit=limit,
        )
        return jsonify({
            "returns": [r.to_dict() for r in returns],
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
        current_app.logger.exception("Failed to list returns")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.post("")
@require_actor
def create_return_route():
    """
    Request body:
    {
        "store_id": 1,
        "sale_id": 12,  (optional)
        "status": "PENDING",  (optional; APPROVED/COMPLETED settle stock at once)
        "items": [{"product_id": 1, "quantity": 1, "unit_price_cents": 1500, "condition": "GOOD"}],
        "refund_method": "CASH", "refund_amount_cents": 1500, "reason": "..."
    }
    """
    try:
        data = require_object(request.get_json(silent=True))
        return_doc = return_service.create_return(
            data.get("store_id"),
            data.get("items"),
            g.actor_id,
            sale_id=optional_int(data.get("sale_id"), "sale_id"),
            status=data.get("status"),
            return_date=data.get("return_date"),
            return_type=data.get("return_type"),
            refund_method=data.get("refund_method"),
            refund_amount_cents=data.get("refund_amount_cents"),
            reason=data.get("reason"),
        )
        return jsonify({"return": return_doc.to_dict()}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create return")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.get("/<int:return_id>")
def get_return_route(return_id: int):
    return_doc = return_service.get_return(return_id)
    if not return_doc:
        return jsonify({"error": "Return not found"}), 404
    return jsonify({"return": return_doc.to_dict()}), 200


@returns_bp.put("/<int:return_id>")
@require_actor
def update_return_route(return_id: int):
    """
    Settle and/or edit a return.

    "status" (APPROVED or REJECTED) settles a PENDING return; refund_method,
    refund_amount_cents and reason edit the refund details. Both commit
    together or not at all.
    """
    try:
        data = require_object(request.get_json(silent=True))
        edits = {key: data[key] for key in _EDITABLE_FIELDS if key in data}
        if "status" not in data and not edits:
            return jsonify({"error": "Nothing to update"}), 400

        if "status" in data:
            return_doc = return_service.settle_return(return_id, data["status"], g.actor_id, **edits)
        else:
            return_doc = return_service.update_return(return_id, **edits)
        return jsonify({"return": return_doc.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update return")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.post("/<int:return_id>/complete")
@require_actor
def complete_return_route(return_id: int):
    try:
        return_doc = return_service.complete_return(return_id, g.actor_id)
        return jsonify({"return": return_doc.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to complete return")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.delete("/<int:return_id>")
@require_actor
def delete_return_route(return_id: int):
    try:
        return_service.delete_return(return_id)
        return jsonify({"message": "Return deleted successfully"}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete return")
        return jsonify({"error": "Internal server error"}), 500
