"""
In-process change feed behind the real-time listeners.

Services publish a topic after every committed write; listeners re-read a
snapshot from the database and push it to their callback. A subscription is
the only long-lived resource: ``unsubscribe()`` stops delivery immediately,
including for a publish that is already fanning out.
"""
from typing import Any, Awaitable, Callable, Dict, List, Optional

from recipe_social.utils.logger import log_failure

Callback = Callable[[Any], Awaitable[None]]


def conversations_topic(user_id: str) -> str:
    return f"conversations:{user_id}"


def messages_topic(conversation_id: str) -> str:
    return f"messages:{conversation_id}"


def notifications_topic(user_id: str) -> str:
    return f"notifications:{user_id}"


def preferences_topic(user_id: str) -> str:
    return f"preferences:{user_id}"


def follow_topic(follower_id: str, following_id: str) -> str:
    return f"follows:{follower_id}:{following_id}"


class Subscription:
    def __init__(self, feed: "ChangeFeed", topic: str, callback: Callback):
        self.feed = feed
        self.topic = topic
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self.feed._remove(self)


class ResubscribableSubscription:
    """
    A listener whose data subscription depends on a value that can change
    (the badge watermark). A control subscription watches the value; every
    change tears the data subscription down before a new one is created.
    """

    def __init__(self):
        self.control: Optional[Subscription] = None
        self.inner: Optional[Subscription] = None
        self.active = True

    def drop_inner(self) -> None:
        if self.inner is not None:
            self.inner.unsubscribe()
            self.inner = None

    def attach_inner(self, subscription: Subscription) -> None:
        self.drop_inner()
        if not self.active:
            subscription.unsubscribe()
            return
        self.inner = subscription

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        if self.control is not None:
            self.control.unsubscribe()
        self.drop_inner()


class ChangeFeed:
    def __init__(self):
        self._subscribers: Dict[str, List[Subscription]] = {}

    def subscribe(self, topic: str, callback: Callback) -> Subscription:
        subscription = Subscription(self, topic, callback)
        self._subscribers.setdefault(topic, []).append(subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        subscribers = self._subscribers.get(subscription.topic)
        if not subscribers:
            return
        if subscription in subscribers:
            subscribers.remove(subscription)
        if not subscribers:
            del self._subscribers[subscription.topic]

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, ()))

    async def publish(self, topic: str, payload: Any = None) -> None:
        """Deliver to every live subscriber; a failing callback never fails the writer."""
        for subscription in list(self._subscribers.get(topic, ())):
            if not subscription.active:
                continue
            try:
                await subscription.callback(payload)
            except Exception as e:
                log_failure("Listener", f"delivering {topic}", e)

    async def watch(self, topic: str, session_factory, load: Callable, callback: Callback) -> Subscription:
        """
        Snapshot listener: deliver ``load(db)`` now and again after every
        publish on ``topic``. Each delivery uses its own short-lived session.
        """
        async def deliver(_payload=None):
            db = session_factory()
            try:
                snapshot = load(db)
            finally:
                db.close()
            if subscription.active:
                await callback(snapshot)

        subscription = self.subscribe(topic, deliver)
        try:
            await deliver()
        except Exception:
            subscription.unsubscribe()
            raise
        return subscription


# Global change feed instance
change_feed = ChangeFeed()
