"""Inventory routes - thin JSON wrappers around the inventory services."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from variant_inventory.core.config import Settings, get_settings
from variant_inventory.core.enums import InventoryErrorCode
from variant_inventory.core.exceptions import BaseServiceError
from variant_inventory.dependencies import (
    get_audit_ledger,
    get_db,
    get_inventory_service,
    get_order_processor,
    get_reconciliation_service,
    get_stock_lookup,
)
from variant_inventory.schemas.inventory import InventoryUpdateRequest, OrderInventoryRequest
from variant_inventory.schemas.stock import StockValidationRequest
from variant_inventory.services.audit_ledger import InventoryAuditLedger
from variant_inventory.services.inventory_service import InventoryService
from variant_inventory.services.order_inventory_processor import OrderInventoryProcessor
from variant_inventory.services.reconciliation_service import ReconciliationService, process_reconciliation
from variant_inventory.services.stock_lookup import StockLookupService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/inventory", tags=["inventory"])

ERROR_STATUS = {
    InventoryErrorCode.PRODUCT_NOT_FOUND: 404,
    InventoryErrorCode.ORDER_NOT_FOUND: 404,
    InventoryErrorCode.VARIANT_NOT_FOUND: 404,
    InventoryErrorCode.EMPTY_ORDER: 400,
    InventoryErrorCode.INVALID_IDENTIFIER: 400,
    InventoryErrorCode.MISSING_PRODUCT_ID: 400,
    InventoryErrorCode.STORAGE_ERROR: 500,
}


def _status_for(code: Optional[InventoryErrorCode]) -> int:
    return ERROR_STATUS.get(code, 500) if code else 500


def _raise_for(error: BaseServiceError):
    raise HTTPException(status_code=_status_for(error.code), detail=error.message)


@router.post("/reduce")
async def reduce_inventory(
    request: InventoryUpdateRequest,
    service: InventoryService = Depends(get_inventory_service),
):
    """Decrement a single size/color variant."""
    result = await service.reduce_inventory(request)
    status_code = 200 if result.success else _status_for(result.error_code)
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json", by_alias=True))


@router.post("/update-from-order")
async def update_from_order(
    request: OrderInventoryRequest,
    service: InventoryService = Depends(get_inventory_service),
):
    """Apply an order's line items to stock. Already-applied items are skipped unless forceUpdate is set."""
    result = await service.update_inventory_from_order(request.order_id, request.force_update)
    if result.error_code:
        raise HTTPException(status_code=_status_for(result.error_code), detail=result.error)
    return result.model_dump(mode="json", by_alias=True)


@router.post("/manual-update")
async def manual_update(
    request: OrderInventoryRequest,
    service: InventoryService = Depends(get_inventory_service),
):
    """Force inventory update for an order when the automatic path failed."""
    logger.info(f"Manual inventory update triggered for order {request.order_id} (force={request.force_update})")
    result = await service.update_inventory_from_order(request.order_id, force_update=request.force_update)
    if result.error_code:
        raise HTTPException(status_code=_status_for(result.error_code), detail=result.error)
    return {
        "success": result.success,
        "orderId": request.order_id,
        "updatedProducts": [r.model_dump(mode="json", by_alias=True) for r in result.results],
        "errors": [e.model_dump(mode="json", by_alias=True) for e in result.errors],
    }


@router.post("/fix")
async def fix_inventory(
    product_id: Optional[str] = Query(None, alias="productId"),
    mode: str = Query("all", pattern="^(all|backfill|sync)$"),
    dry_run: bool = Query(False, alias="dryRun"),
    db=Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Run the structure backfill and/or the cross-structure sync."""
    reports = await process_reconciliation(db, mode=mode, product_id=product_id, dry_run=dry_run, settings=settings)
    for report in reports.values():
        if report.error_code:
            raise HTTPException(status_code=_status_for(report.error_code), detail="; ".join(report.errors))
    return {name: report.model_dump(mode="json", by_alias=True) for name, report in reports.items()}


@router.get("/sync")
async def inventory_diagnosis(
    product_id: Optional[str] = Query(None, alias="productId"),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    """Summarise stock per product and flag inconsistent structures."""
    try:
        report = await service.diagnose(product_id)
    except BaseServiceError as e:
        _raise_for(e)
    return report.model_dump(mode="json", by_alias=True)


@router.post("/sync-all-orders")
async def sync_all_orders(
    dry_run: bool = Query(False, alias="dryRun"),
    processor: OrderInventoryProcessor = Depends(get_order_processor),
):
    """Apply stock for every recent or fulfilled order that still has unflagged line items."""
    report = await processor.sync_pending_orders(dry_run=dry_run)
    return report.model_dump(mode="json", by_alias=True)


@router.get("/products/{product_id}")
async def product_inventory(
    product_id: str,
    size: Optional[str] = Query(None),
    lookup: StockLookupService = Depends(get_stock_lookup),
):
    try:
        inventory = await lookup.get_product_inventory(product_id, size)
    except BaseServiceError as e:
        _raise_for(e)
    return inventory.model_dump(mode="json", by_alias=True)


@router.get("/products/{product_id}/variant")
async def variant_stock(
    product_id: str,
    size: str = Query(...),
    color: str = Query(...),
    lookup: StockLookupService = Depends(get_stock_lookup),
):
    try:
        availability = await lookup.get_variant_stock(product_id, size, color)
    except BaseServiceError as e:
        _raise_for(e)
    return availability.model_dump(mode="json", by_alias=True)


@router.get("/stock")
async def stock_snapshot(
    product_ids: str = Query(..., alias="productIds", description="Comma separated product ids"),
    lookup: StockLookupService = Depends(get_stock_lookup),
):
    ids = [pid.strip() for pid in product_ids.split(",") if pid.strip()]
    if not ids:
        raise HTTPException(status_code=400, detail="No product IDs provided")
    snapshot = await lookup.get_stock_snapshot(ids)
    return snapshot.model_dump(mode="json", by_alias=True)


@router.post("/validate")
async def validate_stock(
    request: StockValidationRequest,
    lookup: StockLookupService = Depends(get_stock_lookup),
):
    """Check cart items against current stock before checkout."""
    if not request.items:
        raise HTTPException(status_code=400, detail="Invalid request: items array is required")
    report = await lookup.validate_items(request.items)
    return report.model_dump(mode="json", by_alias=True)


@router.get("/audit/{product_id}")
async def audit_history(
    product_id: str,
    limit: int = Query(50, ge=1, le=500),
    ledger: InventoryAuditLedger = Depends(get_audit_ledger),
):
    """Recent ledger entries for a product."""
    records = await ledger.history(product_id, limit=limit)
    for record in records:
        record["_id"] = str(record["_id"])
    return {"productId": product_id, "records": records}
