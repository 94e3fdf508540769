"""Kitchen and waiter order routes."""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, status

from app.api.deps import Runtime
from app.db.session import DbSession
from app.models.active_order import ActiveOrder
from app.schemas.active_order import OrderCreate, OrderResponse, OrderUpdate
from app.services.order_notifier import FEEDS
from app.services.order_poller import CLOSED_STATUSES

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=List[OrderResponse])
def list_orders(
    db: DbSession,
    feed: Optional[str] = Query(None, description="kitchen or waiter-cash"),
    include_closed: bool = False,
):
    """List orders, optionally narrowed to what one screen shows."""
    if feed is not None and feed not in FEEDS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown feed '{feed}'")

    query = db.query(ActiveOrder)
    if not include_closed:
        query = query.filter(ActiveOrder.status.notin_(CLOSED_STATUSES))
    orders = [o.to_dict() for o in query.order_by(ActiveOrder.created_at).all()]

    if feed is not None:
        orders = [o for o in orders if FEEDS[feed].include(o)]
    return orders


@router.get("/signal")
def get_order_signal(runtime: Runtime):
    """Latest "order created" token, for screens that poll instead of listening."""
    return {"token": runtime.signals.peek()}


@router.post("/", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(body: OrderCreate, db: DbSession, runtime: Runtime):
    order = ActiveOrder(
        customer=body.customer,
        waiter_name=body.waiter_name,
        table_number=body.table_number,
        items=[
            {"name": item.name, "quantity": item.quantity, "price": float(item.price)}
            for item in body.items
        ],
        payment_method=body.payment_method,
        payment_confirmed=body.payment_confirmed,
        status=body.status,
        total=body.computed_total(),
    )
    db.add(order)
    db.commit()
    db.refresh(order)
    logger.info(f"Order {order.id} created for {order.customer} ({order.payment_method})")

    await runtime.signals.publish()
    return order.to_dict()


@router.patch("/{order_id}", response_model=OrderResponse)
async def update_order(order_id: str, body: OrderUpdate, db: DbSession, runtime: Runtime):
    order = db.query(ActiveOrder).filter(ActiveOrder.id == order_id).first()
    if not order:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")

    if body.status is not None:
        order.status = body.status
    if body.payment_confirmed is not None:
        order.payment_confirmed = body.payment_confirmed
    db.commit()
    db.refresh(order)

    await runtime.signals.publish()
    return order.to_dict()
