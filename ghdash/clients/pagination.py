import asyncio
import logging
import re
from collections.abc import Awaitable
from collections.abc import Callable
from collections.abc import Mapping
from collections.abc import Sequence
from typing import Any

from ghdash.clients.github_client import GitHubClient

logger = logging.getLogger(__name__)

LINK_PART_PATTERN = re.compile(r'<([^>]+)>\s*;\s*rel="([^"]+)"')

Sleep = Callable[[float], Awaitable[Any]]


def parse_link_header(value: str | None) -> dict[str, str]:
    """Map each RFC-5988 relation in a `Link` header to its URL."""

    links: dict[str, str] = {}
    if not value:
        return links
    for url, relations in LINK_PART_PATTERN.findall(value):
        for relation in relations.split():
            links.setdefault(relation, url)
    return links


def with_per_page(path: str, per_page: int) -> str:
    if re.search(r"[?&]per_page=", path):
        return path
    separator = "&" if "?" in path else "?"
    return f"{path}{separator}per_page={per_page}"


def _page_items(data: Any, search_shape: bool) -> list[Any]:
    if search_shape:
        items = data.get("items") if isinstance(data, Mapping) else None
    else:
        items = data
    return list(items) if isinstance(items, list) else []


async def fetch_all_pages(
    client: GitHubClient,
    path: str,
    per_page: int = 100,
    max_pages: int = 10,
    search_shape: bool = False,
    delay: float = 0.2,
    ttl_seconds: float | None = None,
    sleep: Sleep = asyncio.sleep,
) -> list[Any]:
    """Follow `rel="next"` links and return the items of every page.

    Stops on the first empty page, on a missing next link, on a short page
    (plain array responses only) and after `max_pages` requests. Hitting the
    page bound is expected and returns what was collected.
    """

    items: list[Any] = []
    next_path: str | None = with_per_page(path, per_page)
    requests_made = 0

    while next_path is not None and requests_made < max_pages:
        if requests_made > 0 and delay > 0:
            await sleep(delay)

        result = await client.rest(next_path, ttl_seconds=ttl_seconds)
        requests_made += 1

        page = _page_items(result.data, search_shape)
        if not page:
            break
        items.extend(page)

        if not search_shape and len(page) < per_page:
            break

        next_path = parse_link_header(result.header("link")).get("next")

    if next_path is not None and requests_made >= max_pages:
        logger.info("Stopped paging %s after %d pages", path, max_pages)

    return items


def _dig(data: Any, path: Sequence[str]) -> Any:
    for name in path:
        if not isinstance(data, Mapping):
            return None
        data = data.get(name)
    return data


async def fetch_all_nodes(
    client: GitHubClient,
    query: str,
    variables: Mapping[str, Any],
    connection_path: Sequence[str],
    max_pages: int = 10,
    delay: float = 0.2,
    ttl_seconds: float | None = None,
    sleep: Sleep = asyncio.sleep,
) -> list[Any]:
    """Follow GraphQL `pageInfo` cursors for the connection at `connection_path`.

    The query must declare a `$cursor: String` variable and select
    `nodes` and `pageInfo { hasNextPage endCursor }` on the connection.
    """

    nodes: list[Any] = []
    cursor: str | None = None

    for page_number in range(max_pages):
        if page_number > 0 and delay > 0:
            await sleep(delay)

        data = await client.graphql(
            query, {**variables, "cursor": cursor}, ttl_seconds=ttl_seconds
        )
        connection = _dig(data, connection_path)
        if not isinstance(connection, Mapping):
            break

        page = connection.get("nodes")
        if not isinstance(page, list) or not page:
            break
        nodes.extend(page)

        page_info = connection.get("pageInfo")
        if not isinstance(page_info, Mapping) or not page_info.get("hasNextPage"):
            break
        cursor = page_info.get("endCursor")
        if not isinstance(cursor, str):
            break
    else:
        logger.info(
            "Stopped paging %s after %d pages", ".".join(connection_path), max_pages
        )

    return nodes
