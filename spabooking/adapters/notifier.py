"""
Confirmation notices delivered through the backend's messaging function.
"""

import asyncio
import logging
from typing import Optional

import requests

from ..domain.exceptions import NotificationError
from ..domain.models import ConfirmationNotice

logger = logging.getLogger(__name__)


class HttpConfirmationNotifier:
    """
    Posts booking confirmations to an HTTP endpoint.

    Delivery is best effort: errors are raised as NotificationError for the
    caller to log. Nothing is retried here.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None
    ):
        self.endpoint = endpoint
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json"
        }

    async def send_confirmation(self, notice: ConfirmationNotice) -> None:
        await asyncio.to_thread(self._post, notice)

    def _post(self, notice: ConfirmationNotice) -> None:
        payload = {
            "to": notice.recipient,
            "businessName": notice.business_name,
            "clientName": notice.client_name,
            "service": notice.service,
            "date": notice.date,
            "time": notice.time,
            "confirmationMessage": notice.confirmation_message,
        }

        try:
            response = self.session.post(
                self.endpoint,
                headers=self.headers,
                json=payload,
                timeout=self.timeout
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise NotificationError(f"Failed to send booking confirmation: {e}") from e

        logger.debug("Confirmation accepted by %s", self.endpoint)
