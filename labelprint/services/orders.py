"""
Print order workflow: submission, moderation and monthly statistics.

Permission checks happen in the access gate before any method here runs;
this service only enforces the order rules themselves.
"""
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from labelprint.models.audit import AuditAction
from labelprint.models.domain import Order, Product
from labelprint.services.access import Caller
from labelprint.services.audit import AuditRecorder
from labelprint.services.errors import NotFound, ValidationError
from labelprint.services.expiry import calculate_expiry_date

DEFAULT_ORDER_TYPE = "Print Label"
UNSPECIFIED_DEPARTMENT = "Unspecified department"


class OrderService:
    """Creates and moderates label print orders."""

    def __init__(self, db: Session, audit: AuditRecorder):
        self.db = db
        self.audit = audit

    def get_order(self, order_id: int) -> Order:
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise NotFound("Order not found")
        return order

    def create_order(
        self,
        caller: Caller,
        lot_number: str,
        product_id: str,
        production_date: date,
        quantity: int,
        notes: Optional[str] = None,
        order_type: Optional[str] = None
    ) -> Order:
        """
        Submit a print order.

        The product name and shelf life are copied from the catalog and the
        expiry date is derived from them; clients never supply either.
        """
        missing = [
            name for name, value in (
                ("lot_number", lot_number and lot_number.strip()),
                ("product_id", product_id and product_id.strip()),
                ("production_date", production_date),
                ("quantity", quantity),
            ) if not value
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        if quantity < 0:
            raise ValidationError("Quantity must be positive")

        product = self.db.query(Product).filter(Product.id == product_id.strip()).first()
        if not product:
            raise ValidationError(f"Unknown product code: {product_id}")

        now = datetime.utcnow()
        order = Order(
            order_date=now.date(),
            order_time=now.strftime("%H:%M"),
            order_datetime=now,
            order_type=order_type or DEFAULT_ORDER_TYPE,
            lot_number=lot_number.strip(),
            product_id=product.id,
            product_name=product.name,
            product_exp=product.exp,
            production_date=production_date,
            expiry_date=calculate_expiry_date(production_date, product.exp),
            quantity=quantity,
            notes=notes or "-",
            created_by=caller.profile.name,
            created_by_department=caller.profile.department or UNSPECIFIED_DEPARTMENT,
            is_verified=False,
        )
        self.db.add(order)
        self.db.commit()
        self.db.refresh(order)

        self.audit.record(caller.id, AuditAction.CREATE_ORDER, {
            "order_id": order.id,
            "lot_number": order.lot_number,
            "product_id": order.product_id,
            "quantity": order.quantity,
        })
        return order

    def list_orders(self, lot: Optional[str] = None) -> List[Order]:
        query = self.db.query(Order)
        if lot and lot.strip():
            query = query.filter(func.lower(Order.lot_number).contains(lot.strip().lower()))
        return query.order_by(Order.created_at.desc(), Order.id.desc()).all()

    def edit_order(
        self,
        order: Order,
        actor_id: str,
        lot_number: Optional[str] = None,
        quantity: Optional[int] = None,
        notes: Optional[str] = None
    ) -> Order:
        """Only lot number, quantity and notes are editable after submission."""
        changed = []
        if lot_number is not None:
            if not lot_number.strip():
                raise ValidationError("Lot number cannot be blank")
            order.lot_number = lot_number.strip()
            changed.append("lot_number")
        if quantity is not None:
            if quantity <= 0:
                raise ValidationError("Quantity must be positive")
            order.quantity = quantity
            changed.append("quantity")
        if notes is not None:
            order.notes = notes
            changed.append("notes")
        if not changed:
            raise ValidationError("Nothing to update")

        self.db.commit()
        self.db.refresh(order)
        self.audit.record(actor_id, AuditAction.UPDATE_ORDER, {"order_id": order.id, "fields": changed})
        return order

    def verify_order(self, order: Order, verifier: Caller) -> Order:
        """
        Mark an order as checked.

        Invariant: is_verified, verified_by and verified_at are always set together.
        """
        order.is_verified = True
        order.verified_by = verifier.display_name
        order.verified_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(order)
        self.audit.record(verifier.id, AuditAction.VERIFY_ORDER, {
            "order_id": order.id,
            "verified_by": order.verified_by,
        })
        return order

    def unverify_order(self, order: Order, actor_id: str) -> Order:
        order.is_verified = False
        order.verified_by = None
        order.verified_at = None
        self.db.commit()
        self.db.refresh(order)
        self.audit.record(actor_id, AuditAction.UNVERIFY_ORDER, {"order_id": order.id})
        return order

    def delete_order(self, order: Order, actor_id: str) -> None:
        details = {"order_id": order.id, "lot_number": order.lot_number}
        self.db.delete(order)
        self.db.commit()
        self.audit.record(actor_id, AuditAction.DELETE_ORDER, details)

    def department_counts(self, year: int, month: int) -> Tuple[int, List[Dict]]:
        """
        Orders created in the given calendar month, counted per department.

        Returns the total and a list sorted by count, largest first.
        """
        if not 1 <= month <= 12:
            raise ValidationError("Month must be between 1 and 12")
        if not 1 <= year < 9999:
            raise ValidationError("Year is out of range")

        start = datetime(year, month, 1)
        end = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)

        rows = self.db.query(
            Order.created_by_department,
            func.count(Order.id).label("count")
        ).filter(
            Order.created_at >= start,
            Order.created_at < end
        ).group_by(
            Order.created_by_department
        ).order_by(
            func.count(Order.id).desc(),
            Order.created_by_department
        ).all()

        departments = [
            {"department": department or UNSPECIFIED_DEPARTMENT, "count": count}
            for department, count in rows
        ]
        return sum(d["count"] for d in departments), departments
