"""Authenticated session state shared by the API client and the poller."""

import logging
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

SessionListener = Callable[["Session"], None]


class Session:
    """
    Holds the bearer token for the current operator.

    ``generation`` increases every time a session starts or ends, so work
    that began under one session can tell it is stale once the operator has
    logged out (or back in) while it was running.
    """

    def __init__(self, token: Optional[str] = None):
        self._token = token
        self.generation = 1 if token else 0
        self.user: Optional[dict] = None
        self._listeners: List[SessionListener] = []

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def authenticated(self) -> bool:
        return bool(self._token)

    def subscribe(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: SessionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def establish(self, token: str, user: Optional[dict] = None) -> None:
        if not token:
            raise ValueError("token must not be empty")
        self._token = token
        self.user = user
        self.generation += 1
        logger.info("Session established")
        self._notify()

    def end(self, reason: str = "logout") -> None:
        """End the session. Calling this on an ended session does nothing."""
        if not self._token:
            return
        self._token = None
        self.user = None
        self.generation += 1
        logger.warning(f"Session ended ({reason})")
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)
