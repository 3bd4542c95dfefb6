from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..core.permissions import Identity, require_mutation_rights
from ..crud.orders import get_order
from ..db.session import get_db
from ..deps.auth import require_identity
from ..schemas.order import OrderCreate, OrderRecord, OrderRegistration, ReconciledOrder, StockSummaryRow
from ..services.datasource import DataSource
from ..services.reconciler import reconcile_orders
from ..services.registration import register_order
from ..services.summary import summarize_stock
from .dependencies import get_data_source

router = APIRouter(prefix="/api/v1/orders", tags=["orders"], dependencies=[Depends(require_identity)])


@router.get("/reconciliation", response_model=list[ReconciledOrder])
async def api_order_reconciliation(
    cross_order: bool = False,
    include_deleted: bool = False,
    source: DataSource = Depends(get_data_source),
):
    orders = await source.list_orders()
    if not include_deleted:
        orders = [order for order in orders if not order.is_deleted]
    devices = await source.list_devices()
    return reconcile_orders(orders, devices, check_cross_order=cross_order)


@router.get("/summary", response_model=list[StockSummaryRow])
async def api_stock_summary(source: DataSource = Depends(get_data_source)):
    return summarize_stock(await source.list_orders())


@router.post("", response_model=OrderRegistration, status_code=status.HTTP_201_CREATED)
def api_register_order(
    payload: OrderCreate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
):
    actor = require_mutation_rights(identity)
    try:
        return register_order(db, payload, actor)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get("/{order_id}", response_model=OrderRecord)
def api_get_order(order_id: int, db: Session = Depends(get_db)):
    order = get_order(db, order_id)
    if not order:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return OrderRecord.model_validate(order)
