from collections.abc import Iterable
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

SORT_KEYS = ("stars", "name", "updated")


@dataclass(frozen=True)
class RepositorySummary:
    name: str
    full_name: str
    owner: str
    description: str | None
    language: str | None
    stars: int
    forks: int
    private: bool
    updated_at: str | None
    html_url: str | None


@dataclass(frozen=True)
class RecentCommit:
    sha: str
    message: str
    author: str | None
    date: str | None
    html_url: str | None


def _int(value: Any) -> int:
    return value if isinstance(value, int) else 0


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def summarize_repository(repo: Mapping[str, Any], login: str) -> RepositorySummary:
    """Reduce a `/user/repos` item to what the repository list shows."""

    name = str(repo.get("name", ""))
    owner = repo.get("owner")
    owner_login = _text(owner.get("login")) if isinstance(owner, Mapping) else None
    owner_login = owner_login or login
    return RepositorySummary(
        name=name,
        full_name=_text(repo.get("full_name")) or f"{owner_login}/{name}",
        owner=owner_login,
        description=_text(repo.get("description")),
        language=_text(repo.get("language")),
        stars=_int(repo.get("stargazers_count")),
        forks=_int(repo.get("forks_count")),
        private=bool(repo.get("private")),
        updated_at=_text(repo.get("updated_at")),
        html_url=_text(repo.get("html_url")),
    )


def filter_repositories(
    repositories: Iterable[RepositorySummary],
    query: str | None = None,
    language: str | None = None,
    sort: str = "stars",
) -> list[RepositorySummary]:
    """Search, filter by language and sort the repository list.

    `query` matches the name or description, case-insensitively. `language`
    must match exactly. Sorting by stars and by update time is newest/largest
    first; ties keep their listing order.
    """

    if sort not in SORT_KEYS:
        raise ValueError(f"unknown sort key: {sort}")

    needle = (query or "").strip().casefold()
    selected = [
        repo
        for repo in repositories
        if (not language or repo.language == language)
        and (
            not needle
            or needle in repo.name.casefold()
            or needle in (repo.description or "").casefold()
        )
    ]

    if sort == "name":
        return sorted(selected, key=lambda repo: repo.name.casefold())
    if sort == "updated":
        return sorted(selected, key=lambda repo: repo.updated_at or "", reverse=True)
    return sorted(selected, key=lambda repo: repo.stars, reverse=True)


def repository_languages(repositories: Iterable[RepositorySummary]) -> list[str]:
    """Distinct primary languages, for the language filter options."""

    return sorted({repo.language for repo in repositories if repo.language})


def summarize_commits(items: Iterable[Mapping[str, Any]]) -> list[RecentCommit]:
    commits: list[RecentCommit] = []
    for item in items:
        sha = item.get("sha")
        if not isinstance(sha, str):
            continue
        commit = item.get("commit")
        commit = commit if isinstance(commit, Mapping) else {}
        author = commit.get("author")
        author = author if isinstance(author, Mapping) else {}
        account = item.get("author")
        account_login = account.get("login") if isinstance(account, Mapping) else None

        message = commit.get("message")
        commits.append(
            RecentCommit(
                sha=sha,
                message=message.splitlines()[0] if isinstance(message, str) and message else "",
                author=_text(account_login) or _text(author.get("name")),
                date=_text(author.get("date")),
                html_url=_text(item.get("html_url")),
            )
        )
    return commits
