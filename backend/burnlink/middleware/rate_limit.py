import ipaddress

from slowapi import Limiter
from starlette.requests import Request

from burnlink.config import Settings, settings
from burnlink.services.attempt_limiter import AttemptLimiter


def _is_trusted_proxy(host: str, trusted: list[str]) -> bool:
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return host in trusted
    for entry in trusted:
        try:
            if address in ipaddress.ip_network(entry, strict=False):
                return True
        except ValueError:
            continue
    return False


def get_real_client_ip(request: Request) -> str:
    """Extract real client IP, trusting X-Forwarded-For only from our proxy.

    The first entry of X-Forwarded-For is used when the socket peer is one of
    ``settings.trusted_proxies``. Any other peer is identified by its own
    address, so a client cannot pick a fresh identity per request.
    """
    peer = request.client.host if request.client else "unknown"
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded and _is_trusted_proxy(peer, settings.trusted_proxies):
        # Take the first IP (original client)
        return forwarded.split(",")[0].strip() or peer
    return peer


# Coarse per-IP throttling for create/update/delete routes
limiter = Limiter(key_func=get_real_client_ip)


def build_attempt_limiter(config: Settings) -> AttemptLimiter:
    """Per client+secret limiter for view attempts, owned by the app instance."""
    return AttemptLimiter(
        window_seconds=config.view_attempt_window_seconds,
        max_attempts=config.view_attempt_max,
        evict_threshold=config.view_attempt_evict_threshold,
    )


def get_attempt_limiter(request: Request) -> AttemptLimiter:
    return request.app.state.attempt_limiter
