import hmac
import logging

from errors import AuthorizationError

logger = logging.getLogger(__name__)


class HostGate:
    """Checks the shared host secret presented when a connection opens."""

    def __init__(self, secret: str = ""):
        self._secret = secret or ""
        if not self._secret:
            logger.warning("HOST_KEY is not set; hosting games is disabled")

    @property
    def enabled(self) -> bool:
        return bool(self._secret)

    def is_host_capable(self, credential) -> bool:
        if not self._secret or not credential:
            return False
        return hmac.compare_digest(str(credential).encode(), self._secret.encode())


def require_host(is_host: bool):
    if not is_host:
        raise AuthorizationError()
