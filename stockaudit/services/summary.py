from __future__ import annotations

from typing import Iterable

from ..schemas.common import MaterialType
from ..schemas.order import OrderRecord, StockSummaryRow


def summarize_stock(orders: Iterable[OrderRecord]) -> list[StockSummaryRow]:
    """Inward, outward and remaining quantities per warehouse, asset type and model."""

    totals: dict[tuple[str, str, str], dict[str, int]] = {}
    for order in orders:
        if order.is_deleted:
            continue
        key = (order.warehouse, order.asset_type, order.model)
        bucket = totals.setdefault(key, {"inward": 0, "outward": 0})
        if order.material_type == MaterialType.OUTWARD:
            bucket["outward"] += order.quantity
        else:
            bucket["inward"] += order.quantity
    return [
        StockSummaryRow(
            warehouse=warehouse,
            asset_type=asset_type,
            model=model,
            inward=bucket["inward"],
            outward=bucket["outward"],
            stock=bucket["inward"] - bucket["outward"],
        )
        for (warehouse, asset_type, model), bucket in sorted(totals.items())
    ]
