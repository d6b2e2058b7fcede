# Overview: Flask API routes for truck checkouts; parses input and returns JSON responses.

# backend/truckcheck/routes/checkouts.py
"""
Truck checkout API routes.

State guards live in checkout_service / stock_processor; these handlers only
parse input, translate errors, and serialize. Every TallyError carries its
own HTTP status and JSON body.
"""
from flask import Blueprint, current_app, jsonify, request

from ..errors import TallyError, ValidationError
from ..extensions import db
from ..services import checkout_service, stock_processor
from ..services.audit_service import list_checkout_events
from ..services.invoice_directory import normalize_invoice_numbers
from ..services.invoice_guard import find_conflicts
from ..time_utils import parse_iso_datetime
from ..validation import coerce_int


checkouts_bp = Blueprint("checkouts", __name__, url_prefix="/api/checkouts")


def _actor() -> str | None:
    return request.headers.get("X-Actor") or None


def _error_response(exc: TallyError):
    db.session.rollback()
    return jsonify(exc.to_dict()), exc.status_code


def _internal_error(message: str):
    db.session.rollback()
    current_app.logger.exception(message)
    return jsonify({"error": "Internal server error"}), 500


def _int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    return coerce_int(raw, name)


@checkouts_bp.post("")
def create_checkout_route():
    """
    Create a checkout (status checked_out).

    Request body:
    {
        "employee_name": str,
        "employee_id": str (optional),
        "truck_number": str (optional),
        "notes": str (optional),
        "items_taken": [{"name": str, "sku": str?, "quantity": int, "notes": str?}, ...]
    }

    Returns:
        201: Checkout created
        400: Invalid request
    """
    data = request.get_json(silent=True) or {}

    try:
        checkout = checkout_service.create_checkout(
            data.get("employee_name"),
            data.get("items_taken"),
            employee_id=data.get("employee_id"),
            truck_number=data.get("truck_number"),
            notes=data.get("notes"),
            actor=_actor(),
        )
        return jsonify(checkout.to_dict()), 201

    except TallyError as e:
        return _error_response(e)
    except Exception:
        return _internal_error("Failed to create checkout")


@checkouts_bp.get("")
def list_checkouts_route():
    """
    List checkouts, newest first.

    Query parameters:
        status: checked_out | completed | cancelled
        employee_name: case-insensitive substring
        page: 1-based page (default 1)
        limit: page size (default 20, capped by CHECKOUT_PAGE_LIMIT_MAX)
    """
    try:
        result = checkout_service.list_checkouts(
            status=request.args.get("status") or None,
            employee_name=request.args.get("employee_name") or None,
            page=_int_arg("page", 1),
            limit=_int_arg("limit", 20),
        )
        return jsonify({
            "checkouts": [c.to_dict(include_items=True) for c in result["checkouts"]],
            "pagination": result["pagination"],
        }), 200

    except TallyError as e:
        return _error_response(e)
    except Exception:
        return _internal_error("Failed to list checkouts")


@checkouts_bp.get("/active")
def list_active_checkouts_route():
    try:
        checkouts = checkout_service.list_active_checkouts()
        return jsonify([c.to_dict() for c in checkouts]), 200
    except Exception:
        return _internal_error("Failed to list active checkouts")


@checkouts_bp.get("/employee/<string:employee_name>")
def list_employee_checkouts_route(employee_name: str):
    try:
        checkouts = checkout_service.list_employee_checkouts(employee_name, limit=_int_arg("limit", 50))
        return jsonify([c.to_dict() for c in checkouts]), 200

    except TallyError as e:
        return _error_response(e)
    except Exception:
        return _internal_error("Failed to list employee checkouts")


@checkouts_bp.get("/stats/employee/<string:employee_name>")
def employee_stats_route(employee_name: str):
    """
    Checkout counters for one employee.

    Query parameters:
        start_date, end_date: ISO dates, inclusive
    """
    try:
        try:
            start = parse_iso_datetime(request.args.get("start_date"))
            end = parse_iso_datetime(request.args.get("end_date"), end_of_day=True)
        except ValueError:
            raise ValidationError("start_date / end_date must be ISO-8601 dates")

        stats = checkout_service.get_employee_stats(employee_name, start, end)
        return jsonify(stats), 200

    except TallyError as e:
        return _error_response(e)
    except Exception:
        return _internal_error("Failed to load employee stats")


@checkouts_bp.get("/<int:checkout_id>")
def get_checkout_route(checkout_id: int):
    try:
        checkout = checkout_service.get_checkout(checkout_id)
        return jsonify(checkout.to_dict()), 200

    except TallyError as e:
        return _error_response(e)
    except Exception:
        return _internal_error("Failed to load checkout")


@checkouts_bp.patch("/<int:checkout_id>")
def update_checkout_route(checkout_id: int):
    """
    Edit employee_name / employee_id / truck_number / notes.

    Returns:
        200: Checkout updated
        400: Unknown or invalid fields
        404: Checkout not found
        409: Checkout cancelled
    """
    data = request.get_json(silent=True) or {}

    try:
        checkout = checkout_service.update_checkout(checkout_id, data, actor=_actor())
        return jsonify(checkout.to_dict()), 200

    except TallyError as e:
        return _error_response(e)
    except Exception:
        return _internal_error("Failed to update checkout")


@checkouts_bp.delete("/<int:checkout_id>")
def delete_checkout_route(checkout_id: int):
    """Administrative hard delete (any status). Frees the checkout's invoice numbers."""
    try:
        checkout_service.delete_checkout(checkout_id, actor=_actor())
        return jsonify({"deleted": True, "id": checkout_id}), 200

    except TallyError as e:
        return _error_response(e)
    except Exception:
        return _internal_error("Failed to delete checkout")


@checkouts_bp.post("/<int:checkout_id>/check-work")
def check_work_route(checkout_id: int):
    """
    Preview the tally for candidate invoices. Saves nothing.

    Request body:
    {
        "invoice_numbers": [str, ...] or "INV-1, INV-2",
        "invoice_type": "pending" | "closed"
    }

    Returns:
        200: {"tally_result", "summary", "conflicts"}; conflicts lists other
             checkouts already holding any of the numbers (commit would fail)
    """
    data = request.get_json(silent=True) or {}

    try:
        result = checkout_service.preview_reconciliation(
            checkout_id,
            data.get("invoice_numbers"),
            data.get("invoice_type", "closed"),
        )
        conflicts = find_conflicts(normalize_invoice_numbers(data.get("invoice_numbers")), checkout_id)
        return jsonify({
            "tally_result": result.to_dict(),
            "summary": result.summary(),
            "conflicts": conflicts,
        }), 200

    except TallyError as e:
        return _error_response(e)
    except Exception:
        return _internal_error("Failed to preview checkout tally")


@checkouts_bp.post("/<int:checkout_id>/complete")
def complete_checkout_route(checkout_id: int):
    """
    Commit invoice numbers and tally. Also used to add invoices later.

    Request body: same as check-work.

    Returns:
        200: Checkout (completed)
        400: No invoice numbers / bad invoice type
        404: Checkout not found
        409: Duplicate invoices ("duplicate_checkouts") or illegal state
    """
    data = request.get_json(silent=True) or {}

    try:
        checkout = checkout_service.commit_invoices(
            checkout_id,
            data.get("invoice_numbers"),
            data.get("invoice_type", "closed"),
            actor=_actor(),
        )
        return jsonify(checkout.to_dict()), 200

    except TallyError as e:
        return _error_response(e)
    except Exception:
        return _internal_error("Failed to complete checkout")


@checkouts_bp.post("/<int:checkout_id>/tally")
def tally_checkout_route(checkout_id: int):
    """Re-fetch the stored invoices and replace the stored tally."""
    try:
        checkout, result = checkout_service.retally(checkout_id, actor=_actor())
        return jsonify({"checkout": checkout.to_dict(), "summary": result.summary()}), 200

    except TallyError as e:
        return _error_response(e)
    except Exception:
        return _internal_error("Failed to tally checkout")


@checkouts_bp.post("/<int:checkout_id>/process-stock")
def process_stock_route(checkout_id: int):
    """
    Apply the stored tally to inventory, exactly once.

    Returns:
        200: {"added_back", "tracked_used", "errors", "sold_adjustments", "used_movements"}
        404: Checkout not found
        409: Not completed, not tallied, or already processed
    """
    try:
        report = stock_processor.process_stock(checkout_id, actor=_actor())
        return jsonify(report.to_dict()), 200

    except TallyError as e:
        return _error_response(e)
    except Exception:
        return _internal_error("Failed to process checkout stock")


@checkouts_bp.post("/<int:checkout_id>/cancel")
def cancel_checkout_route(checkout_id: int):
    """
    Cancel a checked out checkout.

    Request body:
    {
        "reason": str
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        checkout = checkout_service.cancel_checkout(checkout_id, data.get("reason"), actor=_actor())
        return jsonify(checkout.to_dict()), 200

    except TallyError as e:
        return _error_response(e)
    except Exception:
        return _internal_error("Failed to cancel checkout")


@checkouts_bp.get("/<int:checkout_id>/events")
def checkout_events_route(checkout_id: int):
    """Audit trail; still readable after the checkout is deleted."""
    try:
        events = list_checkout_events(checkout_id)
        return jsonify([e.to_dict() for e in events]), 200
    except Exception:
        return _internal_error("Failed to load checkout events")
