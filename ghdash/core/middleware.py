from collections import defaultdict
from collections import deque
from collections.abc import Awaitable
from collections.abc import Callable
from collections.abc import Hashable
from collections.abc import Iterable
from threading import RLock
from time import monotonic

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

LIMITED_PATHS = ("/heatmap/me", "/api/dashboard")


class SlidingWindow:
    """Counts hits per key over the trailing `window_seconds`."""

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = monotonic,
    ) -> None:
        self.limit = max(1, limit)
        self.window_seconds = max(1, window_seconds)
        self._clock = clock
        self._hits: dict[Hashable, deque[float]] = defaultdict(deque)
        self._lock = RLock()

    def hit(self, key: Hashable) -> int | None:
        """Record a hit for `key`.

        Returns the seconds to wait when the key is over its limit (the hit
        is not recorded then), else None.
        """

        now = self._clock()
        with self._lock:
            hits = self._hits[key]
            while hits and hits[0] <= now - self.window_seconds:
                hits.popleft()

            if len(hits) >= self.limit:
                return max(1, int(self.window_seconds - (now - hits[0])))

            hits.append(now)
            return None


def client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip() or "unknown"
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


class DashboardRateLimitMiddleware(BaseHTTPMiddleware):
    """Throttle the GET endpoints that fan out to GitHub, per client and path."""

    def __init__(
        self,
        app,
        requests_per_window: int = 30,
        window_seconds: int = 60,
        paths: Iterable[str] = LIMITED_PATHS,
    ) -> None:
        super().__init__(app)
        self.paths = frozenset(paths)
        self.window = SlidingWindow(requests_per_window, window_seconds)

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        path = request.url.path
        if request.method == "GET" and path in self.paths:
            retry_after = self.window.hit((client_ip(request), path))
            if retry_after is not None:
                return JSONResponse(
                    status_code=429,
                    content={"detail": "Too Many Requests"},
                    headers={"Retry-After": str(retry_after)},
                )

        return await call_next(request)
