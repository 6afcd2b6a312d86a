from collections.abc import Callable
from typing import Any

import pytest

from ghdash.clients.github_client import GitHubClient
from ghdash.clients.github_client import RestResult
from ghdash.core.errors import UpstreamError
from ghdash.settings import Settings


class StubTransport:
    """In-process stand-in for the direct/proxy transports."""

    mode = "direct"

    def __init__(
        self,
        rest: Callable[[str], RestResult] | None = None,
        graphql: Callable[[str, dict[str, Any]], dict[str, Any]] | None = None,
    ) -> None:
        self._rest = rest
        self._graphql = graphql
        self.rest_calls: list[str] = []
        self.graphql_calls: list[tuple[str, dict[str, Any]]] = []

    async def rest(self, path: str) -> RestResult:
        self.rest_calls.append(path)
        if self._rest is None:
            raise UpstreamError(f"no REST route for {path}", status_code=404)
        return self._rest(path)

    async def graphql(self, query: str, variables=None) -> dict[str, Any]:
        self.graphql_calls.append((query, dict(variables or {})))
        if self._graphql is None:
            raise UpstreamError("no GraphQL handler")
        return self._graphql(query, dict(variables or {}))


def calendar_data(days: list[tuple[str, int]]) -> dict[str, Any]:
    return {
        "user": {
            "contributionsCollection": {
                "contributionCalendar": {
                    "weeks": [
                        {
                            "contributionDays": [
                                {"date": day, "contributionCount": count}
                                for day, count in days
                            ]
                        }
                    ]
                }
            }
        }
    }


def detail_data(
    commits: list[tuple[str, int]], pull_requests: list[str]
) -> dict[str, Any]:
    return {
        "user": {
            "contributionsCollection": {
                "commitContributionsByRepository": [
                    {
                        "repository": {"nameWithOwner": "octo/app"},
                        "contributions": {
                            "nodes": [
                                {"occurredAt": occurred_at, "commitCount": count}
                                for occurred_at, count in commits
                            ]
                        },
                    }
                ],
                "pullRequestContributionsByRepository": [
                    {
                        "repository": {"nameWithOwner": "octo/app"},
                        "contributions": {
                            "nodes": [
                                {"occurredAt": occurred_at}
                                for occurred_at in pull_requests
                            ]
                        },
                    }
                ],
            }
        }
    }


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        github_token=None,
        database_url=None,
        sentry_dsn=None,
        page_delay_seconds=0,
        log_level="WARNING",
    )


@pytest.fixture
def stub_client(settings: Settings) -> Callable[..., GitHubClient]:
    def build(rest=None, graphql=None) -> GitHubClient:
        return GitHubClient(StubTransport(rest=rest, graphql=graphql), settings=settings)

    return build
