from datetime import date

from pydantic import BaseModel
from pydantic import Field


class LanguageShareOut(BaseModel):
    """Share of bytes written in one language, in whole percent."""

    name: str
    value: int
    color: str


class StatsOut(BaseModel):
    commits: int
    repos: int
    contributions: int
    followers: int
    pull_requests: int = Field(serialization_alias="pullRequests")
    code_reviews: int = Field(serialization_alias="codeReviews")


class MonthPoint(BaseModel):
    month: str
    commits: int
    prs: int


class DailyContribution(BaseModel):
    date: date
    count: int


class ProgressOut(BaseModel):
    completed: int
    total: int


class RepositoryOut(BaseModel):
    name: str
    full_name: str
    owner: str
    description: str | None = None
    language: str | None = None
    stars: int
    forks: int
    private: bool
    updated_at: str | None = None
    html_url: str | None = None


class NoticeOut(BaseModel):
    id: int
    key: str
    level: str
    message: str


class DashboardResponse(BaseModel):
    """Everything the dashboard charts render for the authenticated user."""

    login: str
    language_series: list[LanguageShareOut]
    stats: StatsOut
    monthly_series: list[MonthPoint]
    daily_contributions: list[DailyContribution]
    reconciliation_state: str
    progress: ProgressOut | None = None
    notices: list[NoticeOut] = Field(default_factory=list)
    repositories: list[RepositoryOut] = Field(default_factory=list)
    repository_languages: list[str] = Field(default_factory=list)


class RecentCommitOut(BaseModel):
    sha: str
    message: str
    author: str | None = None
    date: str | None = None
    html_url: str | None = None


class RecentCommitsResponse(BaseModel):
    """Latest commits of one repository, newest first."""

    repository: str
    commits: list[RecentCommitOut]


class HeatmapDay(BaseModel):
    """Single day item used in the heatmap response."""

    date: date
    weekday: int
    count: int
    level: int
    in_range: bool


class HeatmapWeek(BaseModel):
    """Monday-first week column containing seven daily items."""

    week_start: date
    days: list[HeatmapDay]


class HeatmapResponse(BaseModel):
    """Authenticated user heatmap response payload."""

    username: str
    today: date
    start_date: date
    total: int
    weeks: list[HeatmapWeek]
    month_labels: dict[int, str]


class TokenPayload(BaseModel):
    token: str = Field(default="", max_length=512)


class GraphQLPayload(BaseModel):
    query: str = ""
    variables: dict[str, object] | None = None
