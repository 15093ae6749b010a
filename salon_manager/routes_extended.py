"""Routes for inventory, point of sale, the financial ledger, dashboard and exports."""
from __future__ import annotations

from datetime import timedelta

from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload

from . import exports, reports
from .auth import login_required
from .extensions import db
from .models import (Appointment, AppointmentService, Client,
                     FinancialTransaction, InventoryItem, Sale, SaleItem,
                     Service, utc_now)
from .utils import parse_bool, parse_cents, parse_datetime, parse_int

bp_ext = Blueprint("api_ext", __name__)

DEFAULT_CATEGORY = "General"
SALES_CATEGORY = "Product sales"
TRANSACTION_TYPES = ("income", "expense")
DETAIL_KINDS = ("all", "services", "sales")


def _invalid(message: str):
    return jsonify({"error": "invalid_payload", "message": message}), 400


def _not_found(message: str):
    return jsonify({"error": "not_found", "message": message}), 404


def _requested_period(default: str = "month"):
    """Resolve ``range``/``start``/``end`` query args into inclusive bounds.

    Returns ``(name, start, end)``; start and end are ``None`` for ``all``.
    Raises ``ValueError`` for an unknown range name.
    """
    name = (request.args.get("range") or default).strip().lower()
    start = parse_datetime(request.args.get("start"))
    end = parse_datetime(request.args.get("end"))

    if name == "all":
        return name, start, end
    if name not in reports.PERIODS:
        raise ValueError("range must be one of all, day, week, month, custom")

    start, end = reports.period_bounds(name, utc_now(), start, end)
    return name, start, end


# --- BEGIN: Inventory ---

def _parse_item_fields(payload: dict, *, partial: bool) -> tuple[dict | None, str | None]:
    fields: dict[str, object] = {}

    if "name" in payload or not partial:
        name = (payload.get("name") or "").strip()
        if not name:
            return None, "name is required"
        fields["name"] = name

    if "quantity" in payload or not partial:
        quantity = parse_int(payload.get("quantity", 0))
        if quantity is None or quantity < 0:
            return None, "quantity must be a non-negative integer"
        fields["quantity"] = quantity

    for key in ("cost_price_cents", "selling_price_cents"):
        if key in payload or not partial:
            cents = parse_cents(payload.get(key, 0))
            if cents is None:
                return None, f"{key} must be a non-negative integer"
            fields[key] = cents

    if "category" in payload or not partial:
        fields["category"] = (payload.get("category") or "").strip() or DEFAULT_CATEGORY

    return fields, None


@bp_ext.get("/inventory")
@login_required
def list_inventory() -> tuple[dict[str, object], int]:
    """List inventory items sorted by name.
    ---
    tags:
      - Inventory
    parameters:
      - name: search
        in: query
        type: string
      - name: category
        in: query
        type: string
    responses:
      200:
        description: List of inventory items
      500:
        description: Database error
    """
    search = (request.args.get("search") or "").strip()
    category = (request.args.get("category") or "").strip()

    try:
        query = InventoryItem.query
        if search:
            query = query.filter(InventoryItem.name.ilike(f"%{search}%"))
        if category:
            query = query.filter(InventoryItem.category == category)
        items = query.order_by(func.lower(InventoryItem.name)).all()
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch inventory", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"items": [item.to_dict() for item in items]}), 200


@bp_ext.get("/inventory/categories")
@login_required
def list_inventory_categories() -> tuple[dict[str, object], int]:
    rows = db.session.query(InventoryItem.category).distinct().order_by(InventoryItem.category).all()
    return jsonify({"categories": [row[0] for row in rows if row[0]]}), 200


@bp_ext.get("/inventory/summary")
@login_required
def inventory_summary() -> tuple[dict[str, object], int]:
    """Stock totals: units, value at cost and potential profit."""
    items = InventoryItem.query.all()
    summary = reports.inventory_totals(items)
    summary["item_count"] = len(items)
    summary["low_stock"] = sum(1 for item in items if item.stock_status == "low_stock")
    summary["out_of_stock"] = sum(1 for item in items if item.stock_status == "out_of_stock")
    return jsonify({"summary": summary}), 200


@bp_ext.get("/inventory/<int:item_id>")
@login_required
def get_inventory_item(item_id: int) -> tuple[dict[str, object], int]:
    item = db.session.get(InventoryItem, item_id)
    if item is None:
        return _not_found("Inventory item not found")
    return jsonify({"item": item.to_dict()}), 200


@bp_ext.post("/inventory")
@login_required
def create_inventory_item() -> tuple[dict[str, object], int]:
    """Add a product to the inventory.
    ---
    tags:
      - Inventory
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            name:
              type: string
            quantity:
              type: integer
            cost_price_cents:
              type: integer
            selling_price_cents:
              type: integer
            category:
              type: string
              default: General
          required:
            - name
    responses:
      201:
        description: Item created
      400:
        description: Invalid payload
    """
    fields, error = _parse_item_fields(request.get_json(silent=True) or {}, partial=False)
    if error:
        return _invalid(error)

    try:
        item = InventoryItem(created_by=g.profile_id, **fields)
        db.session.add(item)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create inventory item", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"message": "Item created successfully", "item": item.to_dict()}), 201


@bp_ext.put("/inventory/<int:item_id>")
@login_required
def update_inventory_item(item_id: int) -> tuple[dict[str, object], int]:
    item = db.session.get(InventoryItem, item_id)
    if item is None:
        return _not_found("Inventory item not found")

    fields, error = _parse_item_fields(request.get_json(silent=True) or {}, partial=True)
    if error:
        return _invalid(error)

    try:
        for key, value in fields.items():
            setattr(item, key, value)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update inventory item", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"message": "Item updated successfully", "item": item.to_dict()}), 200


@bp_ext.delete("/inventory/<int:item_id>")
@login_required
def delete_inventory_item(item_id: int) -> tuple[dict[str, object], int]:
    item = db.session.get(InventoryItem, item_id)
    if item is None:
        return _not_found("Inventory item not found")

    if SaleItem.query.filter_by(inventory_id=item_id).first() is not None:
        return jsonify({"error": "item_in_use", "message": "Item appears in recorded sales"}), 409

    try:
        db.session.delete(item)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to delete inventory item", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"message": "Item deleted successfully"}), 200

# --- END: Inventory ---


# --- BEGIN: Sales ---

def _merge_cart(lines) -> tuple[dict[int, int] | None, str | None]:
    """Collapse cart lines into ``{inventory_id: quantity}``, keeping first-seen order."""
    if not isinstance(lines, list) or not lines:
        return None, "items must be a non-empty list"

    merged: dict[int, int] = {}
    for line in lines:
        if not isinstance(line, dict):
            return None, "each item needs inventory_id and quantity"
        inventory_id = parse_int(line.get("inventory_id"))
        quantity = parse_int(line.get("quantity"))
        if inventory_id is None or quantity is None:
            return None, "each item needs inventory_id and quantity"
        if quantity <= 0:
            return None, "quantity must be greater than zero"
        merged[inventory_id] = merged.get(inventory_id, 0) + quantity
    return merged, None


def _sale_matches(sale: Sale, needle: str) -> bool:
    haystacks = [
        sale.client.name if sale.client else "",
        sale.payment_method or "",
        sale.notes or "",
    ]
    haystacks.extend(item.inventory_item.name for item in sale.items if item.inventory_item)
    return any(needle in value.lower() for value in haystacks)


@bp_ext.get("/sales")
@login_required
def list_sales() -> tuple[dict[str, object], int]:
    """List sales, newest first, with a summary of the listed rows.
    ---
    tags:
      - Sales
    parameters:
      - name: range
        in: query
        type: string
        enum: [all, day, week, month, custom]
        default: all
      - name: start
        in: query
        type: string
        format: date-time
      - name: end
        in: query
        type: string
        format: date-time
      - name: search
        in: query
        type: string
        description: Item names, client name, payment method or notes
    responses:
      200:
        description: Sales and summary
      400:
        description: Invalid range
    """
    try:
        _, start, end = _requested_period(default="all")
    except ValueError as exc:
        return _invalid(str(exc))
    search = (request.args.get("search") or "").strip().lower()

    try:
        sales = (
            Sale.query.options(joinedload(Sale.items).joinedload(SaleItem.inventory_item))
            .order_by(Sale.sale_date.desc())
            .all()
        )
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch sales", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    sales = [s for s in sales if reports.in_period(s.sale_date, start, end)]
    if search:
        sales = [s for s in sales if _sale_matches(s, search)]

    return jsonify({
        "sales": [s.to_dict() for s in sales],
        "summary": reports.sales_summary(sales),
    }), 200


@bp_ext.get("/sales/<int:sale_id>")
@login_required
def get_sale(sale_id: int) -> tuple[dict[str, object], int]:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        return _not_found("Sale not found")
    return jsonify({"sale": sale.to_dict()}), 200


@bp_ext.post("/sales")
@login_required
def create_sale() -> tuple[dict[str, object], int]:
    """Record a product sale.

    The sale, its items, the stock decrement and the linked income entry are
    committed together.
    ---
    tags:
      - Sales
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            client_id:
              type: integer
            payment_method:
              type: string
              default: cash
            notes:
              type: string
            sale_date:
              type: string
              format: date-time
            items:
              type: array
              items:
                type: object
                properties:
                  inventory_id:
                    type: integer
                  quantity:
                    type: integer
          required:
            - items
    responses:
      201:
        description: Sale recorded
      400:
        description: Invalid payload
      404:
        description: Client or inventory item not found
      409:
        description: Not enough stock
      500:
        description: Database error
    """
    payload = request.get_json(silent=True) or {}

    cart, error = _merge_cart(payload.get("items"))
    if error:
        return _invalid(error)

    client_id = None
    if payload.get("client_id") not in (None, ""):
        client_id = parse_int(payload.get("client_id"))
        if client_id is None:
            return _invalid("client_id must be an integer")
        if db.session.get(Client, client_id) is None:
            return _not_found("Client not found")

    sale_date = utc_now()
    if payload.get("sale_date"):
        sale_date = parse_datetime(payload.get("sale_date"))
        if sale_date is None:
            return _invalid("sale_date must be an ISO datetime")

    payment_method = (
        (payload.get("payment_method") or "").strip()
        or current_app.config["DEFAULT_PAYMENT_METHOD"]
    )

    items = (
        InventoryItem.query
        .filter(InventoryItem.item_id.in_(list(cart)))
        .with_for_update()
        .all()
    )
    by_id = {item.item_id: item for item in items}
    missing = [item_id for item_id in cart if item_id not in by_id]
    if missing:
        return _not_found(f"Inventory item not found: {missing[0]}")

    shortages = [
        {"inventory_id": item_id, "name": by_id[item_id].name,
         "requested": quantity, "available": by_id[item_id].quantity}
        for item_id, quantity in cart.items()
        if quantity > by_id[item_id].quantity
    ]
    if shortages:
        return (
            jsonify({
                "error": "insufficient_stock",
                "message": "Not enough stock for one or more items",
                "items": shortages,
            }),
            409,
        )

    try:
        sale = Sale(
            client_id=client_id,
            sale_date=sale_date,
            payment_method=payment_method,
            notes=(payload.get("notes") or "").strip() or None,
            created_by=g.profile_id,
        )
        total = 0
        for item_id, quantity in cart.items():
            item = by_id[item_id]
            line_total = item.selling_price_cents * quantity
            sale.items.append(SaleItem(
                inventory_id=item_id,
                quantity=quantity,
                unit_price_cents=item.selling_price_cents,
                total_price_cents=line_total,
            ))
            # Emitted as quantity = quantity - n
            item.quantity = InventoryItem.quantity - quantity
            total += line_total
        sale.total_amount_cents = total

        db.session.add(sale)
        db.session.flush()

        db.session.add(FinancialTransaction(
            transaction_date=sale_date,
            description=f"Sale #{sale.sale_id}",
            amount_cents=total,
            type="income",
            category=SALES_CATEGORY,
            related_sale_id=sale.sale_id,
            payment_method=payment_method,
            created_by=g.profile_id,
        ))
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to record sale", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    current_app.logger.info("Recorded sale %s totalling %d cents", sale.sale_id, total)
    return jsonify({"message": "Sale recorded successfully", "sale": sale.to_dict()}), 201


@bp_ext.put("/sales/<int:sale_id>")
@login_required
def update_sale(sale_id: int) -> tuple[dict[str, object], int]:
    """Edit the payment method, notes or client of a sale. Items are fixed once sold."""
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        return _not_found("Sale not found")

    payload = request.get_json(silent=True) or {}

    if "client_id" in payload:
        raw_client = payload.get("client_id")
        if raw_client in (None, ""):
            sale.client_id = None
        else:
            client_id = parse_int(raw_client)
            if client_id is None:
                return _invalid("client_id must be an integer")
            if db.session.get(Client, client_id) is None:
                return _not_found("Client not found")
            sale.client_id = client_id

    if "payment_method" in payload:
        sale.payment_method = (
            (payload.get("payment_method") or "").strip()
            or current_app.config["DEFAULT_PAYMENT_METHOD"]
        )
    if "notes" in payload:
        sale.notes = (payload.get("notes") or "").strip() or None

    try:
        FinancialTransaction.query.filter_by(related_sale_id=sale_id).update(
            {"payment_method": sale.payment_method}, synchronize_session=False
        )
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update sale", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"message": "Sale updated successfully", "sale": sale.to_dict()}), 200


def _delete_sale(sale: Sale) -> None:
    FinancialTransaction.query.filter_by(related_sale_id=sale.sale_id).delete(
        synchronize_session=False
    )
    db.session.delete(sale)


@bp_ext.delete("/sales/<int:sale_id>")
@login_required
def delete_sale(sale_id: int) -> tuple[dict[str, object], int]:
    """Delete a sale with its items and ledger entry. Stock is not put back."""
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        return _not_found("Sale not found")

    try:
        _delete_sale(sale)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to delete sale", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"message": "Sale deleted successfully"}), 200

# --- END: Sales ---


# --- BEGIN: Financial ledger ---

def _parse_transaction_fields(payload: dict, *, partial: bool) -> tuple[dict | None, str | None]:
    fields: dict[str, object] = {}

    if "description" in payload or not partial:
        description = (payload.get("description") or "").strip()
        if not description:
            return None, "description is required"
        fields["description"] = description

    if "amount_cents" in payload or not partial:
        amount = parse_cents(payload.get("amount_cents"), allow_zero=False)
        if amount is None:
            return None, "amount_cents must be a positive integer"
        fields["amount_cents"] = amount

    if "type" in payload or not partial:
        transaction_type = (payload.get("type") or "").strip().lower()
        if transaction_type not in TRANSACTION_TYPES:
            return None, "type must be 'income' or 'expense'"
        fields["type"] = transaction_type

    if "transaction_date" in payload or not partial:
        transaction_date = parse_datetime(payload.get("transaction_date"))
        if transaction_date is None:
            return None, "transaction_date must be an ISO datetime"
        fields["transaction_date"] = transaction_date

    for key in ("category", "payment_method", "notes"):
        if key in payload:
            fields[key] = (payload.get(key) or "").strip() or None

    return fields, None


def _linked_response():
    return (
        jsonify({
            "error": "linked_transaction",
            "message": "Entry is linked to a sale or appointment; change it there instead",
        }),
        409,
    )


def _transaction_matches(transaction: FinancialTransaction, needle: str) -> bool:
    haystacks = [
        transaction.description,
        transaction.category or "",
        transaction.payment_method or "",
        transaction.notes or "",
    ]
    return any(needle in value.lower() for value in haystacks)


def _filtered_transactions():
    """Apply the ledger list filters from the query string."""
    _, start, end = _requested_period(default="month")
    transaction_type = (request.args.get("type") or "").strip().lower()
    category = (request.args.get("category") or "").strip()
    search = (request.args.get("search") or "").strip().lower()

    if transaction_type and transaction_type not in TRANSACTION_TYPES:
        raise ValueError("type must be 'income' or 'expense'")

    query = FinancialTransaction.query
    if start is not None:
        query = query.filter(FinancialTransaction.transaction_date >= start)
    if end is not None:
        query = query.filter(FinancialTransaction.transaction_date <= end)
    if transaction_type:
        query = query.filter(FinancialTransaction.type == transaction_type)
    if category:
        query = query.filter(FinancialTransaction.category == category)

    transactions = query.order_by(FinancialTransaction.transaction_date.desc()).all()
    if search:
        transactions = [t for t in transactions if _transaction_matches(t, search)]
    return transactions, start, end


@bp_ext.get("/financial/transactions")
@login_required
def list_transactions() -> tuple[dict[str, object], int]:
    """List ledger entries, newest first.
    ---
    tags:
      - Financial
    parameters:
      - name: range
        in: query
        type: string
        enum: [all, day, week, month, custom]
        default: month
      - name: start
        in: query
        type: string
        format: date-time
      - name: end
        in: query
        type: string
        format: date-time
      - name: type
        in: query
        type: string
        enum: [income, expense]
      - name: category
        in: query
        type: string
      - name: search
        in: query
        type: string
    responses:
      200:
        description: Ledger entries with income, expense and balance totals
      400:
        description: Invalid filter
      500:
        description: Database error
    """
    try:
        transactions, _, _ = _filtered_transactions()
    except ValueError as exc:
        return _invalid(str(exc))
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch transactions", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({
        "transactions": [t.to_dict() for t in transactions],
        "summary": reports.ledger_summary(transactions),
    }), 200


@bp_ext.post("/financial/transactions")
@login_required
def create_transaction() -> tuple[dict[str, object], int]:
    """Record a manual income or expense.
    ---
    tags:
      - Financial
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            description:
              type: string
            amount_cents:
              type: integer
            type:
              type: string
              enum: [income, expense]
            transaction_date:
              type: string
              format: date-time
            category:
              type: string
            payment_method:
              type: string
            notes:
              type: string
          required:
            - description
            - amount_cents
            - type
            - transaction_date
    responses:
      201:
        description: Entry recorded
      400:
        description: Invalid payload
    """
    fields, error = _parse_transaction_fields(request.get_json(silent=True) or {}, partial=False)
    if error:
        return _invalid(error)

    try:
        transaction = FinancialTransaction(created_by=g.profile_id, **fields)
        db.session.add(transaction)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create transaction", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"message": "Transaction created successfully", "transaction": transaction.to_dict()}), 201


@bp_ext.put("/financial/transactions/<int:transaction_id>")
@login_required
def update_transaction(transaction_id: int) -> tuple[dict[str, object], int]:
    transaction = db.session.get(FinancialTransaction, transaction_id)
    if transaction is None:
        return _not_found("Transaction not found")
    if transaction.is_linked:
        return _linked_response()

    fields, error = _parse_transaction_fields(request.get_json(silent=True) or {}, partial=True)
    if error:
        return _invalid(error)

    try:
        for key, value in fields.items():
            setattr(transaction, key, value)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update transaction", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"message": "Transaction updated successfully", "transaction": transaction.to_dict()}), 200


@bp_ext.delete("/financial/transactions/<int:transaction_id>")
@login_required
def delete_transaction(transaction_id: int) -> tuple[dict[str, object], int]:
    transaction = db.session.get(FinancialTransaction, transaction_id)
    if transaction is None:
        return _not_found("Transaction not found")
    if transaction.is_linked:
        return _linked_response()

    try:
        db.session.delete(transaction)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to delete transaction", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"message": "Transaction deleted successfully"}), 200


@bp_ext.delete("/financial/transactions/<int:transaction_id>/linked")
@login_required
def delete_linked_transaction(transaction_id: int) -> tuple[dict[str, object], int]:
    """Delete a linked entry together with the sale or appointment behind it.
    ---
    tags:
      - Financial
    responses:
      200:
        description: Entry and its source deleted
      404:
        description: Transaction not found
      409:
        description: Entry is not linked to anything
    """
    transaction = db.session.get(FinancialTransaction, transaction_id)
    if transaction is None:
        return _not_found("Transaction not found")
    if not transaction.is_linked:
        return (
            jsonify({"error": "not_linked", "message": "Entry is not linked to a sale or appointment"}),
            409,
        )

    deleted: dict[str, object] = {"transaction_id": transaction_id}
    try:
        if transaction.related_sale_id is not None:
            sale = db.session.get(Sale, transaction.related_sale_id)
            if sale is not None:
                _delete_sale(sale)
                deleted["sale_id"] = sale.sale_id
        if transaction.related_appointment_id is not None:
            appointment = db.session.get(Appointment, transaction.related_appointment_id)
            FinancialTransaction.query.filter_by(
                related_appointment_id=transaction.related_appointment_id
            ).delete(synchronize_session=False)
            if appointment is not None:
                db.session.delete(appointment)
                deleted["appointment_id"] = appointment.appointment_id
        FinancialTransaction.query.filter_by(transaction_id=transaction_id).delete(
            synchronize_session=False
        )
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to delete linked transaction", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    current_app.logger.info("Deleted linked transaction %s: %s", transaction_id, deleted)
    return jsonify({"message": "Transaction and linked record deleted successfully", "deleted": deleted}), 200


@bp_ext.get("/financial/summary")
@login_required
def financial_summary() -> tuple[dict[str, object], int]:
    """Income, expense and balance for the filtered ledger, plus per-category totals."""
    try:
        transactions, start, end = _filtered_transactions()
        categories = (
            db.session.query(FinancialTransaction.category)
            .filter(FinancialTransaction.category.isnot(None))
            .distinct()
            .order_by(FinancialTransaction.category)
            .all()
        )
    except ValueError as exc:
        return _invalid(str(exc))
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to build financial summary", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({
        "period": {
            "start": start.isoformat() if start else None,
            "end": end.isoformat() if end else None,
        },
        "totals": reports.ledger_summary(transactions),
        "by_category": reports.totals_by_category(transactions),
        "categories": [row[0] for row in categories],
    }), 200

# --- END: Financial ledger ---


# --- BEGIN: Dashboard ---

@bp_ext.get("/dashboard")
@login_required
def dashboard() -> tuple[dict[str, object], int]:
    """Aggregated figures for the dashboard.
    ---
    tags:
      - Dashboard
    parameters:
      - name: range
        in: query
        type: string
        enum: [day, week, month, custom]
        default: month
      - name: start
        in: query
        type: string
        format: date-time
      - name: end
        in: query
        type: string
        format: date-time
      - name: year
        in: query
        type: integer
        description: Year of the monthly series (defaults to the current year)
    responses:
      200:
        description: Revenue, counts, inventory value, monthly series,
          popular services, upcoming and today's activity
      400:
        description: Invalid range or year
    """
    name = (request.args.get("range") or "month").strip().lower()
    if name not in reports.PERIODS:
        return _invalid("range must be one of day, week, month, custom")

    now = utc_now()
    start, end = reports.period_bounds(
        name, now, parse_datetime(request.args.get("start")), parse_datetime(request.args.get("end"))
    )

    year = now.year
    if request.args.get("year"):
        year = parse_int(request.args.get("year"))
        if year is None:
            return _invalid("year must be an integer")

    try:
        appointments = (
            Appointment.query.options(
                joinedload(Appointment.client),
                joinedload(Appointment.services).joinedload(AppointmentService.service),
            ).all()
        )
        sales = Sale.query.options(joinedload(Sale.client)).all()
        inventory = InventoryItem.query.all()
        client_count = db.session.query(func.count(Client.client_id)).scalar()
        service_count = db.session.query(func.count(Service.service_id)).scalar()
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to load dashboard data", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    period_appointments = [a for a in appointments if reports.in_period(a.start_time, start, end)]
    period_sales = [s for s in sales if reports.in_period(s.sale_date, start, end)]

    return jsonify({
        "period": {"range": name, "start": start.isoformat(), "end": end.isoformat()},
        "revenue": reports.revenue_for_period(appointments, sales, start, end),
        "counts": {
            "clients": client_count,
            "services": service_count,
            "appointments": len(period_appointments),
            "sales": len(period_sales),
        },
        "inventory": reports.inventory_totals(inventory),
        "monthly": reports.monthly_series(appointments, sales, year),
        "popular_services": reports.popular_services(period_appointments),
        "upcoming": [a.to_dict() for a in reports.upcoming_appointments(appointments, now)],
        "today": {
            "appointments": [
                a.to_dict()
                for a in sorted(appointments, key=lambda a: a.start_time)
                if reports.same_day(a.start_time, now)
            ],
            "sales": [s.to_dict() for s in sales if reports.same_day(s.sale_date, now)],
        },
    }), 200


@bp_ext.get("/dashboard/revenue-details")
@login_required
def revenue_details() -> tuple[dict[str, object], int]:
    """Line items behind the revenue figure for a period.
    ---
    tags:
      - Dashboard
    parameters:
      - name: type
        in: query
        type: string
        enum: [all, services, sales]
        default: all
      - name: range
        in: query
        type: string
        enum: [day, week, month, custom]
        default: month
    responses:
      200:
        description: Revenue line items, newest first
      400:
        description: Invalid type or range
    """
    kind = (request.args.get("type") or "all").strip().lower()
    if kind not in DETAIL_KINDS:
        return _invalid("type must be one of all, services, sales")

    name = (request.args.get("range") or "month").strip().lower()
    if name not in reports.PERIODS:
        return _invalid("range must be one of day, week, month, custom")
    start, end = reports.period_bounds(
        name, utc_now(), parse_datetime(request.args.get("start")), parse_datetime(request.args.get("end"))
    )

    appointments = Appointment.query.filter(
        Appointment.status == "completed",
        Appointment.start_time >= start,
        Appointment.start_time <= end,
    ).all()
    sales = Sale.query.filter(Sale.sale_date >= start, Sale.sale_date <= end).all()

    details = reports.revenue_details(appointments, sales, start, end, kind)
    return jsonify({
        "type": kind,
        "period": {"range": name, "start": start.isoformat(), "end": end.isoformat()},
        "items": details,
        "total_cents": sum(row["amount_cents"] for row in details),
    }), 200

# --- END: Dashboard ---


# --- BEGIN: Exports ---

def _export_rows(export_type: str) -> list[dict[str, object]]:
    if export_type == "clients":
        return [c.to_dict() for c in Client.query.order_by(func.lower(Client.name)).all()]
    if export_type == "services":
        return [s.to_dict() for s in Service.query.order_by(func.lower(Service.name)).all()]
    if export_type == "inventory":
        return [i.to_dict() for i in InventoryItem.query.order_by(func.lower(InventoryItem.name)).all()]
    if export_type == "appointments":
        return [
            exports.appointment_row(a)
            for a in Appointment.query.order_by(Appointment.start_time.desc()).all()
        ]
    if export_type == "sales":
        return [exports.sale_row(s) for s in Sale.query.order_by(Sale.sale_date.desc()).all()]
    return [
        t.to_dict()
        for t in FinancialTransaction.query.order_by(FinancialTransaction.transaction_date.desc()).all()
    ]


@bp_ext.get("/exports/<export_type>")
@login_required
def export_data(export_type: str):
    """Download a catalog or ledger as CSV or JSON.
    ---
    tags:
      - Exports
    parameters:
      - name: export_type
        in: path
        type: string
        enum: [clients, services, appointments, inventory, sales, financial]
        required: true
      - name: format
        in: query
        type: string
        enum: [csv, json]
        default: csv
      - name: include_all
        in: query
        type: boolean
        default: true
        description: When false, appointments, sales and financial exports only
          include the last 30 days
    responses:
      200:
        description: File download
      400:
        description: Unknown export type or format
    """
    if export_type not in exports.EXPORT_TYPES:
        return _invalid(f"export type must be one of {', '.join(exports.EXPORT_TYPES)}")

    file_format = (request.args.get("format") or "csv").strip().lower()
    if file_format not in exports.CONTENT_TYPES:
        return _invalid("format must be 'csv' or 'json'")

    include_all = parse_bool(request.args.get("include_all", True))

    try:
        rows = _export_rows(export_type)
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to export %s", export_type, exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    now = utc_now()
    if not include_all and export_type in exports.DATED_EXPORT_TYPES:
        cutoff = now - timedelta(days=exports.RECENT_DAYS)
        recent = []
        for row in rows:
            row_date = exports.row_date(export_type, row)
            if row_date is not None and row_date >= cutoff:
                recent.append(row)
        rows = recent

    body = exports.render(rows, file_format)
    filename = exports.export_filename(export_type, file_format, now.date())
    current_app.logger.info("Exported %d %s row(s) as %s", len(rows), export_type, file_format)

    return current_app.response_class(
        body,
        status=200,
        content_type=exports.CONTENT_TYPES[file_format],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

# --- END: Exports ---
