"""Profile-status API client.

Privacy Policy:
- Only the composed ``{emoji, message}`` payload leaves the machine.
- The bearer token is sent in the ``Authorization`` header and never logged.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Deque, Dict, Optional

import requests

from wakatime_profile_status.config import DEFAULT_STATUS_URL
from wakatime_profile_status.models import StatusMessage

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__ = ["DryRunPublishClient", "PublishClient", "PublishFailure"]

DRY_RUN_HISTORY = 100


class PublishFailure(Exception):
    """The status sink rejected or never received a status.

    Attributes:
        status_code (Optional[int]): HTTP status of the response, None for transport errors.
        message (str): Reason text from the response or the transport error.
    """

    def __init__(self, status_code: Optional[int], message: str) -> None:
        self.status_code = status_code
        self.message = message
        if status_code is None:
            super().__init__(f"Status API Error: {message}")
        else:
            super().__init__(f"Status API Error ({status_code}): {message}")


class PublishClient:
    """Push composed statuses to the profile-status API.

    A publish is a single POST; failures are raised as :class:`PublishFailure`
    and never retried here.
    """

    def __init__(
        self,
        token: str,
        status_url: str = DEFAULT_STATUS_URL,
        timeout: Optional[float] = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not token:
            raise ValueError("token is required")
        self.status_url = status_url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        })

    def publish(self, status: StatusMessage) -> bool:
        """Send ``status`` to the sink.

        Returns:
            bool: True once the sink accepted the status.

        Raises:
            PublishFailure: On a non-2xx response or a transport error.
        """
        payload = status.to_payload()
        logger.debug("Publishing status payload: %s", payload)
        try:
            response = self.session.post(self.status_url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise PublishFailure(None, str(e)) from e

        if not 200 <= response.status_code < 300:
            raise PublishFailure(response.status_code, response.reason or response.text or "unknown error")

        logger.info("Published status: %s %s", status.emoji, status.text)
        return True

    def close(self) -> None:
        self.session.close()

    def __repr__(self) -> str:
        return f"<PublishClient url={self.status_url}>"


class DryRunPublishClient:
    """Publisher for testing mode: logs statuses instead of sending them.

    Only the most recent ``DRY_RUN_HISTORY`` payloads are kept in :attr:`published`.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self.published: Deque[Dict[str, str]] = deque(maxlen=DRY_RUN_HISTORY)

    def publish(self, status: StatusMessage) -> bool:
        payload = status.to_payload()
        self.published.append(payload)
        logger.info("[MOCK] publish: %s %s", payload["emoji"], payload["message"])
        return True

    def close(self) -> None:
        pass
