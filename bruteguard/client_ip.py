"""Client IP for throttling keys, honouring a configured number of trusted proxies."""
from starlette.requests import Request


def get_client_ip(request: Request, proxy_depth: int = 0) -> str:
    """
    Peer address, or with proxy_depth > 0 the X-Forwarded-For entry proxy_depth places
    left of the last one (clamped to the first entry). Falls back to the peer address
    when no X-Forwarded-For header is present.
    """
    ip = request.client.host if request.client else "unknown"
    if proxy_depth <= 0:
        return ip
    forwarded = request.headers.get("x-forwarded-for")
    if not forwarded:
        return ip
    chain = [p.strip() for p in forwarded.split(",") if p.strip()]
    if not chain:
        return ip
    return chain[max(0, len(chain) - 1 - proxy_depth)]
