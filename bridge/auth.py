import logging
import secrets
from typing import Optional

from bridge.errors import BridgeError

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-Api-Key"


class AuthorizationError(BridgeError):
    def __init__(self, message: str = "unauthorized"):
        super().__init__(message)


class ApiKeyGate:
    """Single shared-key check applied to every request when a key is configured."""

    def __init__(self, api_key: str = ""):
        self._api_key = api_key or ""
        logger.info("Auth: api key gate %s", "enabled" if self._api_key else "disabled")

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    def check(self, presented: Optional[str]) -> None:
        if not self._api_key:
            return
        if not presented:
            raise AuthorizationError("missing API key")
        if not secrets.compare_digest(presented.encode("utf-8"), self._api_key.encode("utf-8")):
            logger.warning("Auth: rejected key prefix=%s", presented[:4])
            raise AuthorizationError("invalid API key")
