"""
Push notification adapters implementing the NotificationGateway protocol.
"""

import asyncio
import logging
from typing import Any, Dict, List, Tuple

import requests

from ..domain.exceptions import NotificationUnavailableError
from ..services.gateways import Notification

logger = logging.getLogger(__name__)


class PushNotifier:
    """
    Sends notifications to an HTTP push endpoint.

    Messages are addressed to a topic derived from the account reference
    ("osb::<businessRefId>" or "osd::<userId>"), which the mobile apps
    subscribe to after sign-in.
    """

    def __init__(self, endpoint: str, server_key: str = "", timeout_seconds: float = 10.0):
        """
        Initialize the notifier.

        Args:
            endpoint: URL accepting POSTed push messages
            server_key: Key sent in the Authorization header, if any
            timeout_seconds: Per-request timeout
        """
        self.endpoint = endpoint
        self.timeout_seconds = timeout_seconds
        self.headers = {"Content-Type": "application/json"}
        if server_key:
            self.headers["Authorization"] = f"key={server_key}"

    @staticmethod
    def topic_for(target_account_ref: str) -> str:
        # Topic names may not contain ':'.
        return target_account_ref.replace("::", "-")

    def build_payload(self, target_account_ref: str, notification: Notification) -> Dict[str, Any]:
        return {
            "to": f"/topics/{self.topic_for(target_account_ref)}",
            "notification": notification.to_payload(),
        }

    def _post(self, payload: Dict[str, Any]) -> None:
        try:
            response = requests.post(
                self.endpoint,
                headers=self.headers,
                json=payload,
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise NotificationUnavailableError(f"Push delivery failed: {e}") from e

    async def notify(self, target_account_ref: str, notification: Notification) -> None:
        payload = self.build_payload(target_account_ref, notification)
        await asyncio.to_thread(self._post, payload)
        logger.info("Push sent to %s: %s", target_account_ref, notification.title)


class LoggingNotifier:
    """
    Notifier that only logs, used when no push endpoint is configured.

    Sent messages are kept in ``sent`` for inspection.
    """

    def __init__(self):
        self.sent: List[Tuple[str, Notification]] = []

    async def notify(self, target_account_ref: str, notification: Notification) -> None:
        self.sent.append((target_account_ref, notification))
        logger.info("Notification for %s: %s - %s", target_account_ref, notification.title, notification.body)
