"""
Monitoring service: the persistence and delivery flow around the
moderation engine.

For each submitted activity it loads the parent's threshold policy, runs the
engine, stores the activity with its analysis, and when the decision says so
stores a notification and queues push delivery to the parent's devices.
Delivery outcome never changes the stored moderation result.
"""

from __future__ import annotations

from datetime import datetime, timezone
from functools import partial
from typing import Any, Dict, List, Optional

from pydantic import TypeAdapter

from childwatch.core.logger import get_logger
from childwatch.schemas.activity import ActivityKind, ActivityObservation
from childwatch.schemas.moderation import ThresholdPolicy
from childwatch.services.document_store import Document, DocumentStore, get_document_store
from childwatch.services.moderation_engine import ModerationEngine, get_moderation_engine
from childwatch.services.notification_composer import compose
from childwatch.workers.background_tasks import enqueue_push

log = get_logger(__name__)

USERS = "users"
ACTIVITIES = "activities"
NOTIFICATIONS = "notifications"

SCREENSHOT_PLACEHOLDER = "[screenshot captured]"


class NotFoundError(LookupError):
    pass


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


_DATETIME = TypeAdapter(datetime)


def _as_utc(value: Any) -> datetime:
    moment = _DATETIME.validate_python(value)
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


def _newest_first(docs: List[Document]) -> List[Document]:
    return sorted(docs, key=lambda d: d.get("created_at") or "", reverse=True)


class MonitoringService:
    def __init__(self, store: DocumentStore, engine: ModerationEngine) -> None:
        self.store = store
        self.engine = engine

    # -- parents ------------------------------------------------------------

    def create_parent(self, name: str, device_tokens: Optional[List[str]] = None) -> Document:
        return self.store.create(
            USERS,
            {
                "name": name,
                "device_tokens": list(device_tokens or []),
                "settings": ThresholdPolicy().model_dump(),
                "created_at": _now_iso(),
            },
        )

    def _get_parent(self, parent_id: str) -> Document:
        parent = self.store.get(USERS, parent_id)
        if parent is None:
            raise NotFoundError(f"Parent {parent_id} not found")
        return parent

    def get_policy(self, parent_id: str) -> ThresholdPolicy:
        parent = self._get_parent(parent_id)
        return ThresholdPolicy.from_stored(parent.get("settings") or {})

    def update_policy(self, parent_id: str, updates: Dict[str, Any]) -> ThresholdPolicy:
        current = self.get_policy(parent_id)
        policy = ThresholdPolicy(**{**current.model_dump(), **updates})
        self.store.update(USERS, parent_id, {"settings": policy.model_dump()})
        log.info("Updated threshold policy for parent %s", parent_id)
        return policy

    # -- activities ---------------------------------------------------------

    async def submit_activity(self, parent_id: str, observation: ActivityObservation) -> Document:
        parent = self._get_parent(parent_id)
        policy = ThresholdPolicy.from_stored(parent.get("settings") or {})

        log.info("Processing activity %r for child %s", observation.content_title, observation.child_name)
        outcome = await self.engine.moderate(observation, policy)

        record = observation.model_dump(mode="json", exclude={"screenshot"})
        record.update(
            {
                "parent_id": parent_id,
                "screenshot": SCREENSHOT_PLACEHOLDER if observation.screenshot else None,
                "ai_analysis": outcome.scores.model_dump(mode="json"),
                "decision": outcome.decision.model_dump(mode="json"),
                "flagged": outcome.decision.flagged,
                "notification_sent": False,
                "created_at": _now_iso(),
            }
        )
        activity = self.store.create(ACTIVITIES, record)

        if outcome.decision.should_notify:
            content = compose(observation, outcome.scores)
            # Stored and pushed alerts carry the threshold decision's severity.
            severity = outcome.decision.severity.value
            notification = self.store.create(
                NOTIFICATIONS,
                {
                    "parent_id": parent_id,
                    "activity_id": activity["id"],
                    "child_name": observation.child_name,
                    "type": "content_alert",
                    "title": content.title,
                    "message": content.message,
                    "severity": severity,
                    "violations": outcome.decision.violations,
                    "read": False,
                    "sent": False,
                    "sent_at": None,
                    "created_at": _now_iso(),
                },
            )
            tokens = list(parent.get("device_tokens") or [])
            if tokens:
                await enqueue_push(
                    notification["id"],
                    tokens,
                    content.title,
                    content.message,
                    {"activityId": activity["id"], "severity": severity, "type": "content_alert"},
                    on_delivered=partial(self._mark_sent, notification["id"]),
                )
            else:
                log.info("Parent %s has no registered devices; notification stored only", parent_id)
            activity = self.store.update(
                ACTIVITIES, activity["id"], {"notification_sent": True, "notification_id": notification["id"]}
            )

        log.info("Activity processed: %s (flagged: %s)", activity["id"], activity["flagged"])
        return activity

    def list_activities(
        self,
        parent_id: str,
        child_name: Optional[str] = None,
        activity_kind: Optional[ActivityKind] = None,
        flagged: Optional[bool] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: int = 50,
        skip: int = 0,
    ) -> List[Document]:
        """Activity history, newest first.

        `start_date` and `end_date` bound `observed_at` inclusively; naive
        datetimes are read as UTC. `skip` and `limit` page the sorted result.
        """
        filters: Dict[str, Any] = {"parent_id": parent_id}
        if child_name:
            filters["child_name"] = child_name
        if activity_kind is not None:
            filters["activity_kind"] = activity_kind.value
        if flagged is not None:
            filters["flagged"] = flagged
        activities = self.store.query(ACTIVITIES, filters)

        if start_date is not None or end_date is not None:
            lower = _as_utc(start_date) if start_date is not None else None
            upper = _as_utc(end_date) if end_date is not None else None

            def in_range(doc: Document) -> bool:
                observed = _as_utc(doc["observed_at"])
                if lower is not None and observed < lower:
                    return False
                return upper is None or observed <= upper

            activities = [a for a in activities if in_range(a)]

        return _newest_first(activities)[skip : skip + limit]

    def update_duration(self, activity_id: str, duration: float) -> Document:
        try:
            return self.store.update(ACTIVITIES, activity_id, {"duration": duration})
        except KeyError:
            raise NotFoundError(f"Activity {activity_id} not found")

    # -- notifications ------------------------------------------------------

    def list_notifications(self, parent_id: str, unread_only: bool = False, limit: int = 50) -> List[Document]:
        filters: Dict[str, Any] = {"parent_id": parent_id}
        if unread_only:
            filters["read"] = False
        return _newest_first(self.store.query(NOTIFICATIONS, filters))[:limit]

    def _mark_sent(self, notification_id: str, delivered: int) -> Document:
        """Record that push dispatch ran, whatever the per-device outcome."""
        log.info("Notification %s dispatched (%d device(s) accepted)", notification_id, delivered)
        return self.store.update(NOTIFICATIONS, notification_id, {"sent": True, "sent_at": _now_iso()})

    def mark_notification_read(self, parent_id: str, notification_id: str) -> Document:
        notification = self.store.get(NOTIFICATIONS, notification_id)
        if notification is None or notification.get("parent_id") != parent_id:
            raise NotFoundError(f"Notification {notification_id} not found")
        return self.store.update(NOTIFICATIONS, notification_id, {"read": True, "read_at": _now_iso()})


_service: Optional[MonitoringService] = None


def get_monitoring_service() -> MonitoringService:
    global _service
    if _service is None:
        _service = MonitoringService(get_document_store(), get_moderation_engine())
    return _service
