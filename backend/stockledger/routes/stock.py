# Overview: Flask API routes for stock levels, movement history and the consistency check.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError
from ..services import consistency_service, ledger_service, stock_service
from ..validation import optional_int


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.get("")
def list_stock_route():
    """
    Current stock levels.

    Query params:
        store_id, product_id: optional filters
        low_stock: "true" keeps rows at or under the product's min_stock_level
    """
    try:
        rows = stock_service.list_stock(
            store_id=optional_int(request.args.get("store_id"), "store_id"),
            product_id=optional_int(request.args.get("product_id"), "product_id"),
            low_stock=request.args.get("low_stock", "").lower() == "true",
        )
        return jsonify({"stock": [row.to_dict() for row in rows]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list stock")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/movements")
def list_movements_route():
    try:
        movements = ledger_service.list_movements(
            product_id=optional_int(request.args.get("product_id"), "product_id"),
            store_id=optional_int(request.args.get("store_id"), "store_id"),
            reference_type=request.args.get("reference_type") or None,
            reference_id=optional_int(request.args.get("reference_id"), "reference_id"),
            limit=optional_int(request.args.get("limit"), "limit", default=200, minimum=1, maximum=1000),
        )
        return jsonify({"movements": [m.to_dict() for m in movements]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list stock movements")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/consistency")
def consistency_route():
    """
    Compare stock against the movement ledger.

    Returns:
        200: {"consistent": bool, "discrepancies": [...]}
    """
    try:
        discrepancies = consistency_service.find_discrepancies(
            optional_int(request.args.get("store_id"), "store_id")
        )
        return jsonify({
            "consistent": not discrepancies,
            "discrepancies": [d.to_dict() for d in discrepancies],
        }), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to check stock consistency")
        return jsonify({"error": "Internal server error"}), 500
