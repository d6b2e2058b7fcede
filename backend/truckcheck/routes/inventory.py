# Overview: Flask API routes for the inventory store and its stock movements.

# backend/truckcheck/routes/inventory.py
from flask import Blueprint, current_app, jsonify, request

from ..errors import TallyError
from ..extensions import db
from ..services import inventory_service
from ..validation import coerce_int


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _error_response(exc: TallyError):
    db.session.rollback()
    return jsonify(exc.to_dict()), exc.status_code


@inventory_bp.get("/items")
def list_items_route():
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    try:
        return jsonify(inventory_service.list_items(include_inactive=include_inactive)), 200
    except Exception:
        current_app.logger.exception("Failed to list inventory items")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/items")
def create_item_route():
    """
    Register an item in the inventory store.

    Request body:
    {
        "name": str,
        "sku": str (optional),
        "opening_quantity": int (optional, >= 0)
    }

    Returns:
        201: Item created, with quantity_on_hand
        400: Invalid request
        409: Item already exists
    """
    data = request.get_json(silent=True) or {}

    try:
        opening = data.get("opening_quantity")
        opening = 0 if opening is None else coerce_int(opening, "opening_quantity")
        item = inventory_service.register_item(data.get("name"), sku=data.get("sku"), opening_quantity=opening)
        return jsonify(inventory_service.get_item_summary(item)), 201

    except TallyError as e:
        return _error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create inventory item")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/items/<int:item_id>")
def get_item_route(item_id: int):
    try:
        item = inventory_service.get_item(item_id)
        return jsonify(inventory_service.get_item_summary(item)), 200
    except TallyError as e:
        return _error_response(e)


@inventory_bp.get("/items/<int:item_id>/movements")
def list_movements_route(item_id: int):
    """
    Stock movement history, newest first.

    Query parameters:
        checkout_id: only movements written for this checkout
        limit: default 200
    """
    try:
        checkout_id = request.args.get("checkout_id")
        movements = inventory_service.list_movements(
            item_id,
            checkout_id=coerce_int(checkout_id, "checkout_id") if checkout_id else None,
            limit=coerce_int(request.args.get("limit", "200"), "limit"),
        )
        return jsonify([m.to_dict() for m in movements]), 200

    except TallyError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list stock movements")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/stock-movements")
def post_stock_movement_route():
    """
    Record a receipt, adjustment or invoice sale.

    Request body:
    {
        "item_id": int,
        "movement_type": "RECEIVE" | "ADJUST" | "INVOICE_SALE",
        "quantity": int,           # signed for ADJUST
        "invoice_number": str (optional),
        "note": str (optional)
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        movement = inventory_service.post_stock_movement(
            item_id=coerce_int(data["item_id"], "item_id"),
            movement_type=data["movement_type"],
            quantity=coerce_int(data["quantity"], "quantity"),
            invoice_number=data.get("invoice_number"),
            note=data.get("note"),
        )
        return jsonify(movement.to_dict()), 201

    except KeyError as e:
        db.session.rollback()
        return jsonify({"error": f"Missing required field: {e}"}), 400
    except TallyError as e:
        return _error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to post stock movement")
        return jsonify({"error": "Internal server error"}), 500
