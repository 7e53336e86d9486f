"""
Rate Limiting

Per-business, per-client-IP rate limiting for the public booking surface,
with Redis backend, response headers and logging.
"""

import logging

from fastapi import HTTPException, Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from agenda.infra.redis import RateLimiterStore

logger = logging.getLogger(__name__)

# Header names
HEADER_LIMIT = "X-RateLimit-Limit"
HEADER_REMAINING = "X-RateLimit-Remaining"
HEADER_RESET = "X-RateLimit-Reset"
HEADER_RETRY_AFTER = "Retry-After"


def client_ip(request: Request) -> str:
    """Best-effort client address, honouring X-Forwarded-For."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def enforce_public_rate_limit(
    request: Request,
    store: RateLimiterStore,
    business_slug: str,
) -> None:
    """
    Count a public request and reject it once the window is exhausted.

    Raises HTTPException 429 if the limit is exceeded.

    Usage:
        @router.get("/{slug}/availability")
        async def availability(
            request: Request,
            slug: str,
            store: RateLimiterStore = Depends(get_rate_limiter_store),
        ):
            await enforce_public_rate_limit(request, store, slug)
    """
    ip = client_ip(request)
    identifier = f"public:{business_slug}:{ip}"
    allowed, remaining, reset_seconds = await store.is_allowed(identifier)

    # Stored for RateLimitMiddleware to add headers
    request.state.rate_limit_limit = store.max_requests
    request.state.rate_limit_remaining = remaining
    request.state.rate_limit_reset = reset_seconds

    if not allowed:
        logger.warning(
            f"Rate limit exceeded | Business: {business_slug} | "
            f"Limit: {store.max_requests} | IP: {ip} | Path: {request.url.path}"
        )
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "Rate limit exceeded",
                "limit": store.max_requests,
                "retry_after": reset_seconds,
            },
            headers={
                HEADER_LIMIT: str(store.max_requests),
                HEADER_REMAINING: "0",
                HEADER_RESET: str(reset_seconds),
                HEADER_RETRY_AFTER: str(reset_seconds),
            },
        )


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Adds rate limit headers to responses.

    The check itself is done by ``enforce_public_rate_limit``.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        response = await call_next(request)

        limit = getattr(request.state, "rate_limit_limit", None)
        if limit:
            response.headers[HEADER_LIMIT] = str(limit)
            response.headers[HEADER_REMAINING] = str(request.state.rate_limit_remaining)
            response.headers[HEADER_RESET] = str(request.state.rate_limit_reset)

        return response
