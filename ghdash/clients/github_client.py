import hashlib
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from dataclasses import field
from typing import Any
from typing import Protocol
from urllib.parse import urlsplit

import httpx

from ghdash.clients.rate_limit import enforce
from ghdash.clients.rate_limit import inspect
from ghdash.core.cache import RequestCache
from ghdash.core.errors import AuthenticationError
from ghdash.core.errors import NetworkFailure
from ghdash.core.errors import RateLimitExceeded
from ghdash.core.errors import UpstreamError
from ghdash.core.notices import NoticeBoard
from ghdash.settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class RestResult:
    data: Any
    headers: dict[str, str] = field(default_factory=dict)

    def header(self, name: str) -> str | None:
        name = name.lower()
        for key, value in self.headers.items():
            if key.lower() == name:
                return value
        return None


class Transport(Protocol):
    mode: str

    async def rest(self, path: str) -> RestResult: ...

    async def graphql(
        self, query: str, variables: Mapping[str, Any] | None = None
    ) -> dict[str, Any]: ...


def _graphql_error_message(errors: Any) -> str:
    if isinstance(errors, list):
        messages = [
            str(item.get("message", "unknown error"))
            for item in errors
            if isinstance(item, Mapping)
        ]
        if messages:
            return ", ".join(messages)
    return "GitHub GraphQL returned errors"


def _json_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise UpstreamError(
            "Response body is not valid JSON", status_code=response.status_code
        ) from exc


class DirectTransport:
    """Calls GitHub with a bearer credential and guards the rate limit."""

    mode = "direct"

    def __init__(
        self,
        http: httpx.AsyncClient,
        token: str | None,
        settings: Settings,
        notices: NoticeBoard | None = None,
    ) -> None:
        self.http = http
        self.token = token
        self.settings = settings
        self.notices = notices

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": self.settings.user_agent,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _check(self, response: httpx.Response) -> None:
        if response.status_code == 401:
            raise AuthenticationError("GitHub token is invalid")

        enforce(
            inspect(response.headers),
            self.notices,
            self.settings.rate_limit_warning_threshold,
        )

        if response.is_error:
            raise UpstreamError(
                f"GitHub responded with {response.status_code}",
                status_code=response.status_code,
            )

    async def rest(self, path: str) -> RestResult:
        if path.startswith(("http://", "https://")):
            url = path
        else:
            url = f"{self.settings.github_api_base_url.rstrip('/')}{path}"

        try:
            response = await self.http.get(
                url,
                headers=self._headers(),
                timeout=self.settings.request_timeout_seconds,
            )
        except httpx.TransportError as exc:
            raise NetworkFailure(f"GitHub is unreachable: {exc}") from exc

        self._check(response)
        return RestResult(data=_json_body(response), headers=dict(response.headers))

    async def graphql(
        self, query: str, variables: Mapping[str, Any] | None = None
    ) -> dict[str, Any]:
        try:
            response = await self.http.post(
                self.settings.github_graphql_url,
                json={"query": query, "variables": dict(variables or {})},
                headers=self._headers(),
                timeout=self.settings.request_timeout_seconds,
            )
        except httpx.TransportError as exc:
            raise NetworkFailure(f"GitHub is unreachable: {exc}") from exc

        self._check(response)
        payload = _json_body(response)
        if not isinstance(payload, Mapping):
            raise UpstreamError("GitHub GraphQL response is invalid")
        if payload.get("errors"):
            raise UpstreamError(_graphql_error_message(payload["errors"]))

        data = payload.get("data")
        if not isinstance(data, Mapping):
            raise UpstreamError("GitHub GraphQL data is missing")
        return dict(data)


def _proxy_reset(response: httpx.Response) -> int:
    snapshot = inspect(response.headers)
    if snapshot is not None and snapshot.reset_epoch_seconds:
        return snapshot.reset_epoch_seconds
    try:
        return int(response.json().get("reset") or 0)
    except (ValueError, TypeError, AttributeError):
        return 0


class ProxyTransport:
    """Routes calls through the session-cookie-backed proxy endpoints."""

    mode = "proxy"

    def __init__(
        self,
        http: httpx.AsyncClient,
        settings: Settings,
        cookies: Mapping[str, str] | None = None,
        notices: NoticeBoard | None = None,
    ) -> None:
        self.http = http
        self.settings = settings
        self.cookies = dict(cookies or {})
        self.notices = notices

    def _headers(self) -> dict[str, str]:
        headers = {"User-Agent": self.settings.user_agent}
        if self.cookies:
            headers["Cookie"] = "; ".join(
                f"{name}={value}" for name, value in self.cookies.items()
            )
        return headers

    def _url(self, endpoint: str) -> str:
        return f"{self.settings.proxy_server_url.rstrip('/')}{endpoint}"

    def _relative(self, path: str) -> str:
        if not path.startswith(("http://", "https://")):
            return path
        parts = urlsplit(path)
        return f"{parts.path}?{parts.query}" if parts.query else parts.path

    def _forward_notices(self, notices: Any) -> None:
        if self.notices is None or not isinstance(notices, list):
            return
        for notice in notices:
            if isinstance(notice, Mapping) and notice.get("key") and notice.get("message"):
                self.notices.publish(
                    str(notice["key"]),
                    str(notice["message"]),
                    str(notice.get("level") or "warning"),
                )

    def _unwrap(self, response: httpx.Response) -> Mapping[str, Any]:
        if response.status_code == 401:
            raise AuthenticationError("Proxy session is not authenticated")
        if response.status_code == 429:
            raise RateLimitExceeded(_proxy_reset(response))

        payload = _json_body(response)
        if not isinstance(payload, Mapping):
            raise UpstreamError(
                "Proxy response is invalid", status_code=response.status_code
            )
        self._forward_notices(payload.get("notices"))
        if response.is_error or not payload.get("ok"):
            raise UpstreamError(
                f"Proxy request failed: {payload.get('error')}",
                status_code=response.status_code,
            )
        return payload

    async def rest(self, path: str) -> RestResult:
        try:
            response = await self.http.get(
                self._url("/api/github/rest"),
                params={"path": self._relative(path)},
                headers=self._headers(),
                timeout=self.settings.request_timeout_seconds,
            )
        except httpx.TransportError as exc:
            raise NetworkFailure(f"Proxy server is unreachable: {exc}") from exc

        payload = self._unwrap(response)
        headers = payload.get("headers")
        return RestResult(
            data=payload.get("data"),
            headers=dict(headers) if isinstance(headers, Mapping) else {},
        )

    async def graphql(
        self, query: str, variables: Mapping[str, Any] | None = None
    ) -> dict[str, Any]:
        try:
            response = await self.http.post(
                self._url("/api/github/graphql"),
                json={"query": query, "variables": dict(variables or {})},
                headers=self._headers(),
                timeout=self.settings.request_timeout_seconds,
            )
        except httpx.TransportError as exc:
            raise NetworkFailure(f"Proxy server is unreachable: {exc}") from exc

        data = self._unwrap(response).get("data")
        if not isinstance(data, Mapping):
            raise UpstreamError("GitHub GraphQL data is missing")
        return dict(data)


class GitHubClient:
    """REST and GraphQL access with an optional time-bounded cache."""

    def __init__(
        self,
        transport: Transport,
        cache: RequestCache | None = None,
        settings: Settings | None = None,
        cache_scope: str = "",
    ) -> None:
        self.transport = transport
        self.cache = cache
        self.settings = settings or Settings()
        # Keeps one credential's cached responses away from another's.
        self.cache_scope = cache_scope

    def _namespace(self, kind: str) -> str:
        return f"{kind}:{self.cache_scope}" if self.cache_scope else kind

    @property
    def mode(self) -> str:
        return self.transport.mode

    async def rest(self, path: str, ttl_seconds: float | None = None) -> RestResult:
        if self.cache is None or not ttl_seconds:
            return await self.transport.rest(path)

        async def fetch() -> dict[str, Any]:
            result = await self.transport.rest(path)
            return {"data": result.data, "headers": result.headers}

        payload = await self.cache.cached_fetch(
            self._namespace("rest"), path, ttl_seconds, fetch
        )
        return RestResult(data=payload["data"], headers=payload["headers"])

    async def graphql(
        self,
        query: str,
        variables: Mapping[str, Any] | None = None,
        ttl_seconds: float | None = None,
    ) -> dict[str, Any]:
        if self.cache is None or not ttl_seconds:
            return await self.transport.graphql(query, variables)

        identity = {"query": query, "variables": dict(variables or {})}
        return await self.cache.cached_fetch(
            self._namespace("graphql"),
            identity,
            ttl_seconds,
            lambda: self.transport.graphql(query, variables),
        )


def credential_scope(credential: str | None) -> str:
    if not credential:
        return "anonymous"
    return hashlib.sha256(credential.encode("utf-8")).hexdigest()[:16]


def build_github_client(
    http: httpx.AsyncClient,
    settings: Settings,
    credential: str | None,
    cache: RequestCache | None = None,
    notices: NoticeBoard | None = None,
    cookies: Mapping[str, str] | None = None,
) -> GitHubClient:
    """Use the credential directly when there is one, else go through the proxy."""

    if credential:
        transport: Transport = DirectTransport(http, credential, settings, notices)
    else:
        logger.debug("No credential resolved, using proxy at %s", settings.proxy_server_url)
        transport = ProxyTransport(http, settings, cookies, notices)
    session = credential or (cookies or {}).get("github_token")
    return GitHubClient(
        transport, cache=cache, settings=settings, cache_scope=credential_scope(session)
    )
