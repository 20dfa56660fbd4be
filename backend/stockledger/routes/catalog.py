# Overview: Flask API routes for stores and products; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_actor
from ..errors import LedgerError
from ..services import catalog_service
from ..validation import require_object


stores_bp = Blueprint("stores", __name__, url_prefix="/api/stores")
products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _truthy(value) -> bool:
    return str(value or "").strip().lower() in {"1", "true", "yes"}


# =============================================================================
# STORES
# =============================================================================

@stores_bp.get("")
def list_stores():
    stores = catalog_service.list_stores(active_only=_truthy(request.args.get("active")))
    return jsonify([store.to_dict() for store in stores]), 200


@stores_bp.post("")
@require_actor
def create_store():
    try:
        store = catalog_service.create_store(require_object(request.get_json(silent=True)))
        return jsonify(store.to_dict()), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create store")
        return jsonify({"error": "Internal server error"}), 500


@stores_bp.get("/<int:store_id>")
def get_store(store_id: int):
    store = catalog_service.get_store(store_id)
    if not store:
        return jsonify({"error": "Store not found"}), 404
    return jsonify(store.to_dict()), 200


@stores_bp.put("/<int:store_id>")
@require_actor
def update_store(store_id: int):
    try:
        store = catalog_service.update_store(store_id, require_object(request.get_json(silent=True)))
        return jsonify(store.to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update store")
        return jsonify({"error": "Internal server error"}), 500


@stores_bp.delete("/<int:store_id>")
@require_actor
def delete_store(store_id: int):
    try:
        catalog_service.delete_store(store_id)
        current_app.logger.info("Store %s deleted by %s", store_id, g.actor_id)
        return jsonify({"message": "Store deleted successfully"}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete store")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# PRODUCTS
# =============================================================================

@products_bp.get("")
def list_products():
    products = catalog_service.list_products(
        search=request.args.get("search"),
        active_only=_truthy(request.args.get("active")),
    )
    return jsonify([product.to_dict() for product in products]), 200


@products_bp.post("")
@require_actor
def create_product():
    try:
        product = catalog_service.create_product(require_object(request.get_json(silent=True)), actor_id=g.actor_id)
        return jsonify(product.to_dict()), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
def get_product(product_id: int):
    product = catalog_service.get_product(product_id)
    if not product:
        return jsonify({"error": "Product not found"}), 404
    return jsonify(product.to_dict()), 200


@products_bp.put("/<int:product_id>")
@require_actor
def update_product(product_id: int):
    try:
        product = catalog_service.update_product(product_id, require_object(request.get_json(silent=True)))
        return jsonify(product.to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>")
@require_actor
def delete_product(product_id: int):
    try:
        catalog_service.delete_product(product_id)
        current_app.logger.info("Product %s deleted by %s", product_id, g.actor_id)
        return jsonify({"message": "Product deleted successfully"}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500
