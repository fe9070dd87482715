# pallet_orders/services/notification_service.py
from typing import Any, Dict

from pallet_orders.celery_worker import celery_app
from pallet_orders.domain.errors import NotificationError
from pallet_orders.services.email_client import EmailClient
from pallet_orders.utils.logging import get_logger

logger = get_logger(__name__)

ORDER_CONFIRMATION = "order_confirmation"
ADMIN_NEW_ORDER = "admin_new_order"
ORDER_STATUS_UPDATE = "order_status_update"
CUSTOM_PRICE_SET = "custom_price_set"
ADMIN_CONTACT = "admin_contact"
ADMIN_QUOTE = "admin_quote"


class NotificationService:
    """
    Customer and admin notifications.

    dispatch() only schedules a detached Celery task. Its outcome is never
    seen by the caller, only by the logs: a broker outage or a failed send
    must not fail the operation that triggered it.
    """

    def dispatch(self, kind: str, payload: Dict[str, Any]) -> bool:
        try:
            send_notification_task.delay(kind, payload)
        except Exception as e:
            logger.warning(f"[NOTIFICATION] could not schedule {kind}: {e}")
            return False
        logger.info(f"[NOTIFICATION] scheduled {kind}")
        return True


@celery_app.task(name="pallet_orders.services.notification_service.send_notification_task")
def send_notification_task(kind: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    result = EmailClient().send(kind, payload)
    if not result.get("success"):
        logger.warning(f"[NOTIFICATION] {kind} failed: {result.get('error')}")
        #marks the task failed in the result backend, nobody upstream waits for it
        raise NotificationError(f"{kind} notification failed: {result.get('error')}")
    logger.info(f"[NOTIFICATION] {kind} sent")
    return result
