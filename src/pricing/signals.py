"""Price change notifications.

``reference_prices_changed`` and ``supplier_prices_changed`` are sent once
the transaction that modified prices has committed. The receiver below
invalidates cached variance reports; they are recomputed on next read.
"""
from __future__ import annotations

from django.db import transaction
from django.db.models.signals import post_delete, post_save
from django.dispatch import Signal, receiver

from catalog.models import Product

from .models import ReferencePrice, SupplierPriceGrid

# Sent with ``product_id`` and ``zone_id`` (may be None).
reference_prices_changed = Signal()
supplier_prices_changed = Signal()


def _send_on_commit(signal, sender, product_id, zone_id):
    def _dispatch():
        signal.send(sender=sender, product_id=product_id, zone_id=zone_id)

    transaction.on_commit(_dispatch)


@receiver(post_save, sender=Product)
@receiver(post_delete, sender=Product)
def product_saved_notify_reference_change(sender, instance: Product, **kwargs):
    _send_on_commit(reference_prices_changed, Product, instance.pk, None)


@receiver(post_save, sender=ReferencePrice)
@receiver(post_delete, sender=ReferencePrice)
def reference_price_saved_notify(sender, instance: ReferencePrice, **kwargs):
    _send_on_commit(reference_prices_changed, ReferencePrice, instance.product_id, instance.zone_id)


@receiver(post_save, sender=SupplierPriceGrid)
@receiver(post_delete, sender=SupplierPriceGrid)
def supplier_grid_saved_notify(sender, instance: SupplierPriceGrid, **kwargs):
    _send_on_commit(supplier_prices_changed, SupplierPriceGrid, instance.product_id, instance.zone_id)


@receiver(reference_prices_changed)
@receiver(supplier_prices_changed)
def invalidate_variance_cache(sender, **kwargs):
    from .services import bump_price_cache_version

    bump_price_cache_version()
