# Overview: Flask API routes for sales; parses input and returns JSON responses.

# backend/stockledger/routes/sales.py
"""
Sales API Routes

DESIGN:
- POST commits the sale, its items and the stock decrements as one unit
- PUT edits customer/payment metadata only
- DELETE reverses the stock movements and removes the sale; refused while
  any return references it
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_actor
from ..errors import LedgerError
from ..services import sales_service
from ..validation import optional_int, require_object


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
def list_sales_route():
    """
    Query params:
        store_id, payment_status, payment_method, start_date, end_date,
        search, page (default 1), limit (default 10, max 100)
    """
    try:
        page = optional_int(request.args.get("page"), "page", default=1, minimum=1)
        limit = optional_int(request.args.get("limit"), "limit", default=10, minimum=1, maximum=100)
        sales, total = sales_service.list_sales(
            store_id=optional_int(request.args.get("store_id"), "store_id"),
            payment_status=request.args.get("payment_status") or None,
            payment_method=request.args.get("payment_method") or None,
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            search=request.args.get("search"),
            page=page,
            limit=limit,
        )
        return jsonify({
            "sales": [sale.to_dict() for sale in sales],
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
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("")
@require_actor
def create_sale_route():
    """
    Request body:
    {
        "store_id": 1,
        "items": [{"product_id": 1, "quantity": 2, "unit_price_cents": 1500, "discount_cents": 0}],
        "customer_name": "...", "payment_method": "CASH", "tax_cents": 0, "discount_cents": 0
    }

    Returns:
        201: sale with items
        400: invalid input
        404: unknown store or product
    """
    try:
        data = require_object(request.get_json(silent=True))
        sale = sales_service.commit_sale(
            data.get("store_id"),
            data.get("items"),
            g.actor_id,
            customer_name=data.get("customer_name"),
            customer_phone=data.get("customer_phone"),
            customer_email=data.get("customer_email"),
            sale_date=data.get("sale_date"),
            payment_method=data.get("payment_method"),
            payment_status=data.get("payment_status"),
            tax_cents=data.get("tax_cents"),
            discount_cents=data.get("discount_cents"),
            notes=data.get("notes"),
        )
        return jsonify({"sale": sale.to_dict()}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    sale = sales_service.get_sale(sale_id)
    if not sale:
        return jsonify({"error": "Sale not found"}), 404
    return jsonify({"sale": sale.to_dict()}), 200


@sales_bp.put("/<int:sale_id>")
@require_actor
def update_sale_route(sale_id: int):
    try:
        data = require_object(request.get_json(silent=True))
        sale = sales_service.update_sale(sale_id, **data)
        return jsonify({"sale": sale.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.delete("/<int:sale_id>")
@require_actor
def delete_sale_route(sale_id: int):
    try:
        sales_service.reverse_sale(sale_id, g.actor_id)
        return jsonify({"message": "Sale deleted successfully"}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete sale")
        return jsonify({"error": "Internal server error"}), 500
