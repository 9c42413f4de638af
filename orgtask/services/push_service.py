"""
Push delivery to mobile devices through the Expo push gateway
"""
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
from fastapi import BackgroundTasks

from orgtask.core.config import settings

logger = logging.getLogger(__name__)


class PushSender:
    """Interface for delivering one push message. Returns True on acceptance."""

    def send(
        self,
        token: str,
        title: str,
        body: str,
        url: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> bool:
        raise NotImplementedError

    def close(self) -> None:
        pass

    def __enter__(self) -> "PushSender":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class ExpoPushSender(PushSender):
    """Posts messages to the Expo push API with a bounded timeout."""

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None,
    ):
        self.url = url or settings.PUSH_API_URL
        self._client = client or httpx.Client(
            timeout=timeout if timeout is not None else settings.PUSH_TIMEOUT_SECONDS
        )

    def send(
        self,
        token: str,
        title: str,
        body: str,
        url: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> bool:
        payload = {
            "to": token,
            "sound": "default",
            "title": title,
            "body": body,
            "data": {**(data or {}), "url": url},
        }
        try:
            response = self._client.post(
                self.url,
                json=payload,
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("push delivery failed: title=%r error=%s", title, e)
            return False
        return True

    def close(self) -> None:
        self._client.close()


PushMessage = Tuple[str, str, str, Optional[str], Optional[Dict[str, Any]]]


class BackgroundPushSender(PushSender):
    """
    Request-scoped sender that defers gateway calls until after the response.

    send() only queues the message and reports it as accepted. The queue is
    flushed once by a FastAPI background task; plain functions run there in
    the threadpool, so a slow gateway never stalls the event loop.
    """

    def __init__(
        self,
        background_tasks: BackgroundTasks,
        sender_factory: Callable[[], PushSender] = ExpoPushSender,
    ):
        self._background_tasks = background_tasks
        self._sender_factory = sender_factory
        self._queued: List[PushMessage] = []

    def send(
        self,
        token: str,
        title: str,
        body: str,
        url: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> bool:
        if not self._queued:
            self._background_tasks.add_task(self.flush)
        self._queued.append((token, title, body, url, data))
        return True

    def flush(self) -> int:
        """Deliver every queued message; one failure does not stop the rest."""
        queued, self._queued = self._queued, []
        delivered = 0
        with self._sender_factory() as sender:
            for token, title, body, url, data in queued:
                try:
                    if sender.send(token, title, body, url=url, data=data):
                        delivered += 1
                except Exception:
                    logger.exception("deferred push raised: title=%r", title)
        logger.info("deferred pushes flushed: queued=%s delivered=%s", len(queued), delivered)
        return delivered
