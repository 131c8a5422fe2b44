# variant_inventory/cli/inventory.py
import asyncio
import json

import click

from variant_inventory.core.config import get_settings
from variant_inventory.core.logging_config import configure_logging
from variant_inventory.database import close_client, ensure_indexes, get_database
from variant_inventory.services.inventory_service import InventoryService
from variant_inventory.services.order_inventory_processor import OrderInventoryProcessor
from variant_inventory.services.reconciliation_service import (
    ALL,
    BACKFILL,
    SYNC,
    ReconciliationService,
    process_reconciliation,
)


def _run(coro_factory):
    """Open the database, run the coroutine, print its JSON result and close the client."""
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    async def _main():
        db = get_database(settings)
        try:
            await ensure_indexes(db, settings)
            return await coro_factory(db, settings)
        finally:
            close_client()

    result = asyncio.run(_main())
    click.echo(json.dumps(result, indent=2, default=str))
    return result


def _dump(model):
    return model.model_dump(mode="json", by_alias=True)


@click.group()
def cli():
    """Inventory maintenance commands"""


@cli.command()
@click.option('--product-id', default=None, help='Repair only this product')
@click.option('--dry-run', is_flag=True, help='Report changes without writing')
def backfill(product_id, dry_run):
    """Derive missing stock structures on products"""
    async def _backfill(db, settings):
        reports = await process_reconciliation(db, BACKFILL, product_id, dry_run, settings)
        return _dump(reports[BACKFILL])
    _run(_backfill)


@cli.command('sync-structures')
@click.option('--product-id', default=None, help='Repair only this product')
@click.option('--dry-run', is_flag=True, help='Report changes without writing')
def sync_structures(product_id, dry_run):
    """Overwrite sizeVariants stock with inventory.variants where they disagree"""
    async def _sync(db, settings):
        reports = await process_reconciliation(db, SYNC, product_id, dry_run, settings)
        return _dump(reports[SYNC])
    _run(_sync)


@cli.command()
@click.option('--product-id', default=None, help='Repair only this product')
@click.option('--dry-run', is_flag=True, help='Report changes without writing')
def fix(product_id, dry_run):
    """Run the backfill followed by the cross-structure sync"""
    async def _fix(db, settings):
        reports = await process_reconciliation(db, ALL, product_id, dry_run, settings)
        return {name: _dump(report) for name, report in reports.items()}
    _run(_fix)


@cli.command()
@click.option('--product-id', default=None, help='Diagnose only this product')
@click.option('--inconsistent-only', is_flag=True, help='Hide products whose structures agree')
def diagnose(product_id, inconsistent_only):
    """Summarise stock per product and flag inconsistencies"""
    async def _diagnose(db, settings):
        report = await ReconciliationService(db, settings).diagnose(product_id)
        data = _dump(report)
        if inconsistent_only:
            data["summary"] = [
                item for item in data["summary"]
                if item["divergentVariants"] or item["totalIsStale"]
                or item["missingStructures"] or item["hasDuplicateSizes"]
            ]
        return data
    _run(_diagnose)


@cli.command('update-order')
@click.argument('order_id')
@click.option('--force', is_flag=True, help='Re-apply line items already flagged inventoryUpdated')
def update_order(order_id, force):
    """Apply an order's line items to stock"""
    async def _update(db, settings):
        result = await InventoryService(db, settings).update_inventory_from_order(order_id, force_update=force)
        return _dump(result)
    result = _run(_update)
    if not result.get("success"):
        raise SystemExit(1)


@cli.command('sync-orders')
@click.option('--dry-run', is_flag=True, help='Only count orders needing updates')
def sync_orders(dry_run):
    """Apply stock for all orders with unflagged line items"""
    async def _sync_orders(db, settings):
        processor = OrderInventoryProcessor(InventoryService(db, settings))
        return _dump(await processor.sync_pending_orders(dry_run=dry_run))
    _run(_sync_orders)


if __name__ == "__main__":
    cli()
