# notifier.py
import asyncio
import logging
from collections import defaultdict

from fastapi.requests import HTTPConnection

logger = logging.getLogger(__name__)

EXPENSE_CREATED = "expenseCreated"
EXPENSE_UPDATED = "expenseUpdated"
EXPENSE_DELETED = "expenseDeleted"
CATEGORY_CREATED = "categoryCreated"
CATEGORY_UPDATED = "categoryUpdated"
CATEGORY_DELETED = "categoryDeleted"


class Subscription:
    """One connected client: a bounded queue of pending event messages.

    ``None`` on the queue marks the end of the stream.
    """

    def __init__(self, owner: str, maxsize: int):
        self.owner = owner
        self.closed = False
        self._queue = asyncio.Queue(maxsize=maxsize)

    def offer(self, message) -> bool:
        if self.closed:
            return False
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            return False
        return True

    async def get(self):
        return await self._queue.get()

    def pending(self) -> int:
        return self._queue.qsize()

    def close(self):
        if self.closed:
            return
        self.closed = True
        # make room for the end marker so a waiting reader always wakes up
        while self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(None)


class ChangeNotifier:
    """Fans mutation events out to the live subscriptions of the record owner.

    Delivery is best effort: nothing is stored for clients that connect later,
    and a subscriber that cannot keep up is dropped.
    """

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._subscribers = defaultdict(set)
        self.running = False

    def start(self):
        self.running = True
        logger.info("Change notifier started")

    def stop(self):
        self.running = False
        for subscriptions in list(self._subscribers.values()):
            for subscription in list(subscriptions):
                subscription.close()
        self._subscribers.clear()
        logger.info("Change notifier stopped")

    def subscribe(self, owner: str) -> Subscription:
        subscription = Subscription(owner, self.queue_size)
        if not self.running:
            subscription.close()
            return subscription
        self._subscribers[owner].add(subscription)
        logger.info("Subscriber connected for %s (%d open)", owner, self.subscriber_count(owner))
        return subscription

    def unsubscribe(self, subscription: Subscription):
        subscription.close()
        subscriptions = self._subscribers.get(subscription.owner)
        if subscriptions is None or subscription not in subscriptions:
            return
        subscriptions.discard(subscription)
        if not subscriptions:
            del self._subscribers[subscription.owner]
        logger.info("Subscriber disconnected for %s", subscription.owner)

    def subscriber_count(self, owner: str = None) -> int:
        if owner is not None:
            return len(self._subscribers.get(owner, ()))
        return sum(len(subscriptions) for subscriptions in self._subscribers.values())

    def publish(self, owner: str, event: str, data) -> int:
        """Queue ``event`` for every subscription of ``owner`` without waiting.

        Returns the number of subscriptions the event was queued on.
        """
        message = {"event": event, "data": data}
        delivered = 0
        for subscription in list(self._subscribers.get(owner, ())):
            if subscription.offer(message):
                delivered += 1
            else:
                logger.warning("Dropping slow subscriber for %s", owner)
                self.unsubscribe(subscription)
        logger.debug("Published %s for %s to %d subscriber(s)", event, owner, delivered)
        return delivered


def get_notifier(connection: HTTPConnection) -> ChangeNotifier:
    return connection.app.state.notifier
