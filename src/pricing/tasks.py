"""Celery tasks for the pricing analytics pipeline."""
from celery import shared_task

from pricing import services


@shared_task(name="pricing.tasks.refresh_price_analytics")
def refresh_price_analytics(product_id=None, zone_id=None, period_days=30):
    result = services.refresh_price_analytics(
        product_id=product_id,
        zone_id=zone_id,
        period_days=int(period_days),
    )
    return f"analytics refreshed={result.refreshed} skipped={result.skipped} errors={len(result.errors)}"
