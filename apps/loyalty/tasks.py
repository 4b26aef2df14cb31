import logging

from celery import shared_task
from django.db import OperationalError

from apps.orders.models import Order

from .services import credit_points

log = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, autoretry_for=(OperationalError,), retry_backoff=True, retry_backoff_max=600)
def credit_loyalty_points(self, order_id: str):
    order = Order.objects.select_related("foodtruck").filter(id=order_id).first()
    if order is None:
        log.warning("[loyalty] order %s not found", order_id)
        return 0
    return credit_points(order)
