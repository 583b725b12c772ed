"""API routes for the product catalog, print orders and reporting."""
import json
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from labelprint.api.dependencies import get_audit, get_gate, get_order_service
from labelprint.api.schemas import (
    AuditLogEntry,
    ErrorResponse,
    MessageResponse,
    OrderCreate,
    OrderResponse,
    OrderUpdate,
    ProductCreate,
    ProductResponse,
    ProductUpdate,
    StatisticsResponse,
)
from labelprint.database import get_db
from labelprint.models.audit import AuditAction, AuditEvent, describe_action
from labelprint.models.domain import Product, UserProfile
from labelprint.models.enums import Action
from labelprint.services.access import AccessGate
from labelprint.services.audit import AuditRecorder
from labelprint.services.errors import ConstraintViolation, NotFound, ValidationError
from labelprint.services.orders import OrderService

router = APIRouter()

AUDIT_LOG_LIMIT = 200


# Product endpoints
@router.get("/products", response_model=List[ProductResponse])
def list_products(
    request: Request,
    q: Optional[str] = None,
    gate: AccessGate = Depends(get_gate),
    db: Session = Depends(get_db)
):
    """List finished-goods codes newest first, optionally filtered by code or name."""
    gate.authenticate(request)
    query = db.query(Product)
    search = (q or "").strip().lower()
    if search:
        query = query.filter(or_(
            func.lower(Product.id).contains(search),
            func.lower(Product.name).contains(search)
        ))
    return query.order_by(Product.created_at.desc()).all()


@router.post("/products", response_model=ProductResponse, status_code=status.HTTP_201_CREATED, responses={
    400: {"model": ErrorResponse, "description": "Blank field or duplicate product code"}
})
def create_product(
    product_data: ProductCreate,
    request: Request,
    gate: AccessGate = Depends(get_gate),
    db: Session = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit)
):
    """Register a finished-goods code with its shelf life."""
    code, name, exp = product_data.id.strip(), product_data.name.strip(), product_data.exp.strip()
    if not code or not name or not exp:
        raise ValidationError("All fields are required")

    caller = gate.authenticate(request)
    if db.query(Product).filter(Product.id == code).first():
        raise ConstraintViolation("Product code already exists")

    product = Product(id=code, name=name, exp=exp)
    db.add(product)
    db.commit()
    db.refresh(product)
    audit.record(caller.id, AuditAction.CREATE_PRODUCT, {"product_id": code, "name": name, "exp": exp})
    return product


@router.put("/products/{product_id}", response_model=ProductResponse)
def update_product(
    product_id: str,
    product_data: ProductUpdate,
    request: Request,
    gate: AccessGate = Depends(get_gate),
    db: Session = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit)
):
    """Rename a product or change its shelf life. Existing orders keep their copies."""
    name, exp = product_data.name.strip(), product_data.exp.strip()
    if not name or not exp:
        raise ValidationError("All fields are required")

    caller = gate.authenticate(request)
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFound("Product not found")

    product.name = name
    product.exp = exp
    db.commit()
    db.refresh(product)
    audit.record(caller.id, AuditAction.UPDATE_PRODUCT, {"product_id": product_id, "name": name, "exp": exp})
    return product


@router.delete("/products/{product_id}", response_model=MessageResponse)
def delete_product(
    product_id: str,
    request: Request,
    gate: AccessGate = Depends(get_gate),
    db: Session = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit)
):
    caller = gate.authenticate(request)
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFound("Product not found")

    db.delete(product)
    db.commit()
    audit.record(caller.id, AuditAction.DELETE_PRODUCT, {"product_id": product_id})
    return {"message": "Product deleted"}


# Order endpoints
@router.post("/orders", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
def create_order(
    order_data: OrderCreate,
    request: Request,
    gate: AccessGate = Depends(get_gate),
    service: OrderService = Depends(get_order_service)
):
    """
    Submit a label print order.
    Product name, shelf life and expiry date are filled in from the catalog.
    """
    caller = gate.authenticate(request)
    return service.create_order(
        caller,
        lot_number=order_data.lot_number,
        product_id=order_data.product_id,
        production_date=order_data.production_date,
        quantity=order_data.quantity,
        notes=order_data.notes,
        order_type=order_data.order_type,
    )


@router.get("/orders", response_model=List[OrderResponse])
def list_orders(
    request: Request,
    lot: Optional[str] = None,
    gate: AccessGate = Depends(get_gate),
    service: OrderService = Depends(get_order_service)
):
    """List orders newest first, optionally filtered by lot number."""
    gate.authenticate(request)
    return service.list_orders(lot)


@router.put("/orders/{order_id}", response_model=OrderResponse, responses={
    403: {"model": ErrorResponse, "description": "Moderator tier only"}
})
def edit_order(
    order_id: int,
    order_data: OrderUpdate,
    request: Request,
    gate: AccessGate = Depends(get_gate),
    service: OrderService = Depends(get_order_service)
):
    """Edit lot number, quantity or notes of an order."""
    caller = gate.require(request, Action.EDIT_ORDER)
    order = service.get_order(order_id)
    return service.edit_order(
        order,
        caller.id,
        lot_number=order_data.lot_number,
        quantity=order_data.quantity,
        notes=order_data.notes,
    )


@router.post("/orders/{order_id}/verify", response_model=OrderResponse)
def verify_order(
    order_id: int,
    request: Request,
    gate: AccessGate = Depends(get_gate),
    service: OrderService = Depends(get_order_service)
):
    """Mark an order as checked, stamping the verifier's name and employee id."""
    caller = gate.require(request, Action.VERIFY_ORDER)
    return service.verify_order(service.get_order(order_id), caller)


@router.delete("/orders/{order_id}/verify", response_model=OrderResponse)
def unverify_order(
    order_id: int,
    request: Request,
    gate: AccessGate = Depends(get_gate),
    service: OrderService = Depends(get_order_service)
):
    caller = gate.require(request, Action.VERIFY_ORDER)
    return service.unverify_order(service.get_order(order_id), caller.id)


@router.delete("/orders/{order_id}", response_model=MessageResponse)
def delete_order(
    order_id: int,
    request: Request,
    gate: AccessGate = Depends(get_gate),
    service: OrderService = Depends(get_order_service)
):
    caller = gate.require(request, Action.DELETE_ORDER)
    service.delete_order(service.get_order(order_id), caller.id)
    return {"message": "Order deleted"}


# Reporting endpoints
@router.get("/statistics", response_model=StatisticsResponse)
def get_statistics(
    request: Request,
    year: Optional[int] = None,
    month: Optional[int] = Query(None, ge=1, le=12),
    gate: AccessGate = Depends(get_gate),
    service: OrderService = Depends(get_order_service)
):
    """
    Orders per department for one calendar month (defaults to the current one).
    Not available to the plain user role.
    """
    gate.require(request, Action.VIEW_STATISTICS)
    now = datetime.utcnow()
    year = year or now.year
    month = month or now.month
    total, departments = service.department_counts(year, month)
    return {"year": year, "month": month, "total": total, "departments": departments}


@router.get("/audit-logs", response_model=List[AuditLogEntry])
def list_audit_logs(
    request: Request,
    q: Optional[str] = None,
    gate: AccessGate = Depends(get_gate),
    db: Session = Depends(get_db)
):
    """
    The latest audit events with the actor's name and email.

    ``q`` filters the fetched events by actor name, action tag or details.
    """
    gate.require(request, Action.VIEW_AUDIT_LOG)

    rows = db.query(AuditEvent, UserProfile.name, UserProfile.email).outerjoin(
        UserProfile, UserProfile.id == AuditEvent.user_id
    ).order_by(
        AuditEvent.created_at.desc(),
        AuditEvent.id.desc()
    ).limit(AUDIT_LOG_LIMIT).all()

    entries = []
    search = (q or "").strip().lower()
    for event, name, email in rows:
        details = event.details or {}
        if search:
            haystack = [(name or "").lower(), event.action.lower(), json.dumps(details, ensure_ascii=False).lower()]
            if not any(search in text for text in haystack):
                continue
        entries.append(AuditLogEntry(
            id=event.id,
            user_id=event.user_id,
            user_name=name,
            user_email=email,
            action=event.action,
            action_label=describe_action(event.action),
            details=details,
            ip_address=event.ip_address,
            created_at=event.created_at,
        ))
    return entries
