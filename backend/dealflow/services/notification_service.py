from typing import Optional, Dict, Any, Iterable, List
import logging

from ..models.events import DomainEvent, EVENT_TEMPLATES
from .database_service import DatabaseService, DatabaseError

logger = logging.getLogger(__name__)

# Default configuration values
DEFAULT_CONFIG = {
    'enabled': True,
    'enable_metrics': True,
}


class NotificationService:
    """Turns workflow events into per-user notification documents.

    Delivery is fire-and-forget: failures are counted and logged, never raised
    to the caller.
    """

    def __init__(self, collection=None, config: Optional[Dict[str, Any]] = None):
        self.notification_service = collection if collection is not None else DatabaseService("notifications")

        self.config = {**DEFAULT_CONFIG, **(config or {})}
        self.enabled = self.config['enabled']
        self.enable_metrics = self.config['enable_metrics']
        self.metrics = {'notifications_sent': 0, 'notifications_failed': 0} if self.enable_metrics else {}

    async def create_notification(self, user_id: str, event: DomainEvent) -> str:
        """Persist one notification for one recipient"""
        template = EVENT_TEMPLATES.get(event.type, {"title": event.type, "message": ""})
        notification_doc = {
            "user_id": user_id,
            "type": event.type,
            "title": template["title"],
            "message": template["message"],
            "data": event.payload,
            "is_read": False,
            "created_at": event.occurred_at.isoformat(),
        }
        return await self.notification_service.create(notification_doc)

    async def notify(self, user_ids: Iterable[str], event: DomainEvent) -> Dict[str, Any]:
        """Notify every user; returns {"sent": count, "failed": [user_id, ...]}"""
        sent = 0
        failed: List[str] = []

        if not self.enabled:
            logger.debug(f"Notifications disabled; skipping {event.type}")
            return {"sent": 0, "failed": []}

        for user_id in user_ids:
            try:
                await self.create_notification(user_id, event)
                sent += 1
            except DatabaseError as e:
                logger.warning(f"Failed to notify user {user_id} of {event.type}: {e}")
                failed.append(user_id)

        self._record_metric('notifications_sent', sent)
        self._record_metric('notifications_failed', len(failed))
        return {"sent": sent, "failed": failed}

    async def dispatch_events(self, events: Iterable[DomainEvent]) -> Dict[str, Any]:
        """Fan out a workflow result's events to their recipients"""
        totals = {"sent": 0, "failed": []}
        for event in events:
            if not event.recipients:
                continue
            result = await self.notify(event.recipients, event)
            totals["sent"] += result["sent"]
            totals["failed"].extend(result["failed"])

        if totals["failed"]:
            logger.warning(f"{len(totals['failed'])} notification(s) could not be delivered")
        return totals

    def _record_metric(self, metric_name: str, increment: int = 1) -> None:
        """Record simple metrics with minimal overhead"""
        if not self.enable_metrics:
            return
        self.metrics[metric_name] = self.metrics.get(metric_name, 0) + increment

    def get_metrics(self) -> Dict[str, Any]:
        return dict(self.metrics)
