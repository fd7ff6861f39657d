"""Celery tasks for the credits app."""
import logging

from celery import shared_task
from django.utils import timezone

logger = logging.getLogger("ravito")


@shared_task(name="credits.tasks.log_credit_alerts")
def log_credit_alerts(organization_id=None):
    """Log the overdue customers of every active organization.

    Alerts are derived from the customers' state; nothing is stored.
    """
    from accounts.models import Organization
    from credits.services import get_credit_alerts

    organizations = Organization.objects.filter(is_active=True)
    if organization_id:
        organizations = organizations.filter(pk=organization_id)

    now = timezone.now()
    total = 0
    for organization in organizations:
        alerts = get_credit_alerts(organization, now=now)
        if not alerts:
            continue
        critical = sum(1 for alert in alerts if alert.alert_level.value == "critical")
        at_risk = sum(alert.current_balance for alert in alerts)
        total += len(alerts)
        logger.warning(
            "Carnet %s: %d alerte(s) dont %d critique(s), %d FCFA a risque.",
            organization,
            len(alerts),
            critical,
            at_risk,
        )

    logger.info("log_credit_alerts completed: %d alerts.", total)
    return f"{total} alerts"
