import json
from collections.abc import Mapping
from collections.abc import Sequence
from datetime import UTC
from datetime import date
from datetime import datetime
from datetime import timedelta
from typing import Any
from urllib.parse import quote
from urllib.parse import urlencode

from ghdash.clients.github_client import GitHubClient
from ghdash.clients.pagination import fetch_all_nodes
from ghdash.clients.pagination import fetch_all_pages
from ghdash.core.errors import UpstreamError
from ghdash.services.aggregation import flatten_calendar
from ghdash.settings import Settings

CALENDAR_QUERY = """
query($login: String!, $from: DateTime!, $to: DateTime!) {
  user(login: $login) {
    contributionsCollection(from: $from, to: $to) {
      contributionCalendar {
        totalContributions
        weeks {
          contributionDays {
            date
            contributionCount
          }
        }
      }
    }
  }
}
"""

CONTRIBUTION_DETAIL_QUERY = """
query($login: String!, $from: DateTime!, $to: DateTime!, $repos: Int!, $nodes: Int!) {
  user(login: $login) {
    contributionsCollection(from: $from, to: $to) {
      commitContributionsByRepository(maxRepositories: $repos) {
        repository { nameWithOwner }
        contributions(first: $nodes) {
          nodes { occurredAt commitCount }
        }
      }
      pullRequestContributionsByRepository(maxRepositories: $repos) {
        repository { nameWithOwner }
        contributions(first: $nodes) {
          nodes { occurredAt }
        }
      }
    }
  }
}
"""

PULL_REQUEST_DATES_QUERY = """
query($owner: String!, $name: String!, $cursor: String) {
  repository(owner: $owner, name: $name) {
    pullRequests(first: 100, after: $cursor, orderBy: {field: CREATED_AT, direction: DESC}) {
      nodes {
        createdAt
        author { login }
      }
      pageInfo {
        hasNextPage
        endCursor
      }
    }
  }
}
"""

REPOSITORY_TOTALS_FRAGMENT = """
  repo{index}: repository(owner: {owner}, name: {name}) {{
    name
    defaultBranchRef {{
      target {{
        ... on Commit {{
          history {{
            totalCount
          }}
        }}
      }}
    }}
    pullRequests(first: {sample}, states: [OPEN, CLOSED, MERGED]) {{
      totalCount
      nodes {{
        reviews {{
          totalCount
        }}
      }}
    }}
    primaryLanguage {{
      name
    }}
  }}
"""


def one_year_window(today: date | None = None) -> tuple[datetime, datetime]:
    """Trailing window accepted by `contributionsCollection` (at most one year)."""

    to_day = today or datetime.now(UTC).date()
    from_day = to_day - timedelta(days=364)
    start = datetime.fromisoformat(f"{from_day.isoformat()}T00:00:00+00:00")
    end = datetime.fromisoformat(f"{to_day.isoformat()}T23:59:59+00:00")
    return start, end


def _iso(moment: datetime) -> str:
    return moment.isoformat().replace("+00:00", "Z")


def _collection(data: Mapping[str, Any]) -> Mapping[str, Any]:
    user = data.get("user")
    if not isinstance(user, Mapping):
        raise UpstreamError("GitHub user not found")

    collection = user.get("contributionsCollection")
    if not isinstance(collection, Mapping):
        raise UpstreamError("GitHub contributionsCollection is missing")
    return collection


async def fetch_viewer(client: GitHubClient, settings: Settings) -> dict[str, Any]:
    """Fetch the profile of the credential owner."""

    result = await client.rest("/user", ttl_seconds=settings.cache_ttl_seconds)
    payload = result.data
    if not isinstance(payload, Mapping):
        raise UpstreamError("GitHub user response is invalid")

    raw_login = payload.get("login")
    if not isinstance(raw_login, str) or not raw_login:
        raise UpstreamError("GitHub user response is missing required fields")
    return dict(payload)


async def fetch_repositories(
    client: GitHubClient, settings: Settings
) -> list[dict[str, Any]]:
    repositories = await fetch_all_pages(
        client,
        "/user/repos?sort=pushed&direction=desc",
        per_page=settings.per_page,
        max_pages=settings.max_pages,
        delay=settings.page_delay_seconds,
        ttl_seconds=settings.cache_ttl_seconds,
    )
    return [repo for repo in repositories if isinstance(repo, Mapping)]


async def fetch_contribution_calendar(
    client: GitHubClient,
    login: str,
    start: datetime,
    end: datetime,
    settings: Settings,
) -> list[dict[str, str | int]]:
    """Fetch the daily contribution calendar for `login` within the window."""

    data = await client.graphql(
        CALENDAR_QUERY,
        {"login": login, "from": _iso(start), "to": _iso(end)},
        ttl_seconds=settings.graphql_cache_ttl_seconds,
    )

    calendar = _collection(data).get("contributionCalendar")
    if not isinstance(calendar, Mapping):
        raise UpstreamError("GitHub contributionCalendar is missing")
    return flatten_calendar(calendar)


def _occurrences(groups: Any) -> list[str]:
    timestamps: list[str] = []
    for group in groups if isinstance(groups, list) else []:
        if not isinstance(group, Mapping):
            continue
        contributions = group.get("contributions")
        nodes = contributions.get("nodes") if isinstance(contributions, Mapping) else None
        for node in nodes if isinstance(nodes, list) else []:
            if not isinstance(node, Mapping):
                continue
            occurred_at = node.get("occurredAt")
            if not isinstance(occurred_at, str):
                continue
            # A commit contribution node stands for commitCount commits that day.
            repeat = node.get("commitCount", 1)
            timestamps.extend([occurred_at] * (repeat if isinstance(repeat, int) else 1))
    return timestamps


async def fetch_contribution_detail(
    client: GitHubClient,
    login: str,
    start: datetime,
    end: datetime,
    settings: Settings,
) -> tuple[list[str], list[str]]:
    """Return `occurredAt` timestamps of commit and pull-request contributions.

    Both lists are capped by the repository and node limits in settings.
    """

    data = await client.graphql(
        CONTRIBUTION_DETAIL_QUERY,
        {
            "login": login,
            "from": _iso(start),
            "to": _iso(end),
            "repos": settings.contribution_repository_limit,
            "nodes": settings.contribution_node_limit,
        },
        ttl_seconds=settings.graphql_cache_ttl_seconds,
    )
    collection = _collection(data)
    return (
        _occurrences(collection.get("commitContributionsByRepository")),
        _occurrences(collection.get("pullRequestContributionsByRepository")),
    )


def build_repository_totals_query(
    repositories: Sequence[tuple[str, str]], sample: int = 10
) -> str:
    """One aliased `repository` selection per (owner, name) pair."""

    fragments = [
        REPOSITORY_TOTALS_FRAGMENT.format(
            index=index,
            owner=json.dumps(owner),
            name=json.dumps(name),
            sample=sample,
        )
        for index, (owner, name) in enumerate(repositories)
    ]
    return "query {\n" + "".join(fragments) + "}\n"


async def fetch_repository_totals(
    client: GitHubClient,
    repositories: Sequence[tuple[str, str]],
    settings: Settings,
) -> dict[str, Any]:
    if not repositories:
        return {}
    query = build_repository_totals_query(
        repositories, sample=settings.pull_request_review_sample
    )
    return await client.graphql(query, ttl_seconds=settings.graphql_cache_ttl_seconds)


def _repo_path(full_name: str) -> str:
    owner, _, name = full_name.partition("/")
    return f"/repos/{quote(owner)}/{quote(name)}"


async def fetch_repository_languages(
    client: GitHubClient, full_name: str, settings: Settings
) -> dict[str, int]:
    result = await client.rest(
        f"{_repo_path(full_name)}/languages", ttl_seconds=settings.cache_ttl_seconds
    )
    payload = result.data
    if not isinstance(payload, Mapping):
        return {}
    return {name: size for name, size in payload.items() if isinstance(size, int)}


async def fetch_repository_commit_dates(
    client: GitHubClient,
    full_name: str,
    login: str,
    start: datetime,
    end: datetime,
    settings: Settings,
) -> list[str]:
    query = urlencode({"author": login, "since": _iso(start), "until": _iso(end)})
    commits = await fetch_all_pages(
        client,
        f"{_repo_path(full_name)}/commits?{query}",
        per_page=settings.per_page,
        max_pages=settings.max_pages,
        delay=settings.page_delay_seconds,
        ttl_seconds=settings.cache_ttl_seconds,
    )

    dates: list[str] = []
    for item in commits:
        commit = item.get("commit") if isinstance(item, Mapping) else None
        author = commit.get("author") if isinstance(commit, Mapping) else None
        raw_date = author.get("date") if isinstance(author, Mapping) else None
        if isinstance(raw_date, str):
            dates.append(raw_date)
    return dates


async def fetch_repository_pull_request_dates(
    client: GitHubClient,
    full_name: str,
    login: str,
    start: datetime,
    end: datetime,
    settings: Settings,
) -> list[str]:
    owner, _, name = full_name.partition("/")
    pulls = await fetch_all_nodes(
        client,
        PULL_REQUEST_DATES_QUERY,
        {"owner": owner, "name": name},
        connection_path=("repository", "pullRequests"),
        max_pages=settings.max_pages,
        delay=settings.page_delay_seconds,
        ttl_seconds=settings.graphql_cache_ttl_seconds,
    )

    dates: list[str] = []
    for node in pulls:
        if not isinstance(node, Mapping):
            continue
        author = node.get("author")
        if isinstance(author, Mapping) and author.get("login") not in (None, login):
            continue
        raw_date = node.get("createdAt")
        if not isinstance(raw_date, str):
            continue
        try:
            created_at = datetime.fromisoformat(raw_date.replace("Z", "+00:00"))
        except ValueError:
            continue
        if created_at < start:
            # Nodes arrive newest first.
            break
        if created_at <= end:
            dates.append(raw_date)
    return dates


async def fetch_recent_commits(
    client: GitHubClient, full_name: str, settings: Settings, limit: int = 10
) -> list[dict[str, Any]]:
    """Latest commits on the default branch, newest first."""

    result = await client.rest(
        f"{_repo_path(full_name)}/commits?per_page={limit}",
        ttl_seconds=settings.cache_ttl_seconds,
    )
    payload = result.data
    if not isinstance(payload, list):
        return []
    return [item for item in payload if isinstance(item, Mapping)]
