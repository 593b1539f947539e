# app/core/push.py
"""
Push notification client (Firebase Cloud Messaging).

Responsibilities:
  - Initialize the Firebase Admin SDK once, from an explicit credentials path.
  - Expose a single notify(...) call for services to use.
  - Never raise on delivery problems: failures are logged and counted.

Typical .env configuration:

    FIREBASE_CREDENTIALS_PATH=/secrets/firebase-service-account.json
    PUSH_ENABLED=true
"""
import logging
from typing import Any

import firebase_admin
from firebase_admin import credentials as fb_credentials
from firebase_admin import messaging

logger = logging.getLogger(__name__)


class PushClient:
    """Send multicast notifications via FCM (v1 API)."""

    def __init__(self, credentials_path: str | None = None, enabled: bool = True):
        self.credentials_path = credentials_path
        self.enabled = enabled
        self._app: firebase_admin.App | None = None

    def initialize(self) -> None:
        """
        Initialize the Firebase Admin SDK.

        Called from the app lifespan. A failure here disables push for the
        process instead of failing startup.
        """
        if not self.enabled or self._app is not None:
            return
        try:
            if self.credentials_path:
                cred = fb_credentials.Certificate(self.credentials_path)
                self._app = firebase_admin.initialize_app(cred)
            else:
                self._app = firebase_admin.initialize_app()
            logger.info("Firebase Admin SDK initialized")
        except Exception as e:
            logger.warning(f"Firebase initialization failed: {e}. Push notifications disabled.")
            self.enabled = False

    def notify(
        self,
        tokens: list[str],
        title: str,
        body: str,
        data: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """
        Send one notification to many device tokens.

        Returns:
            {"success_count": int, "failure_count": int}
        """
        if not tokens:
            return {"success_count": 0, "failure_count": 0}
        if not self.enabled or self._app is None:
            logger.debug("Push disabled, skipping notification")
            return {"success_count": 0, "failure_count": len(tokens)}

        message = messaging.MulticastMessage(
            notification=messaging.Notification(title=title, body=body),
            data={k: str(v) for k, v in (data or {}).items()},
            tokens=tokens,
        )
        try:
            response = messaging.send_each_for_multicast(message, app=self._app)
        except Exception as e:
            logger.error(f"Multicast notification failed: {e}")
            return {"success_count": 0, "failure_count": len(tokens)}

        if response.failure_count:
            logger.warning(
                f"Push delivered to {response.success_count}/{len(tokens)} devices"
            )
        return {
            "success_count": response.success_count,
            "failure_count": response.failure_count,
        }
