"""
Desktop toasts for FocusFlow.

The app registers ``notify`` as an achievement unlock listener, so unlocks
raised on the ticker thread show up as "Achievement unlocked: <name>" toasts
without blocking accrual. Platforms without a plyer backend only get a log line.
"""

from __future__ import annotations

import logging
import threading

from plyer import notification as plyer_notification  # type: ignore[import-not-found]

logger = logging.getLogger(__name__)

APP_NAME = "FocusFlow"


def notify(title: str, message: str, timeout: int = 5) -> threading.Thread:
    """Show ``title``/``message`` on a daemon thread and return that thread."""
    def _send():
        try:
            send = getattr(plyer_notification, "notify", None)
            if callable(send):
                send(title=title, message=message, timeout=timeout, app_name=APP_NAME)  # type: ignore[no-untyped-call]
            else:
                logger.info("%s - %s", title, message)
        except Exception as e:
            logger.warning("Notification %r not shown: %s", title, e)

    t = threading.Thread(target=_send, name="FocusFlow-Notify", daemon=True)
    t.start()
    return t
