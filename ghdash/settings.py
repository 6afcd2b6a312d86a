from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict


DEFAULT_LANGUAGE_PALETTE = [
    "#f7df1e",
    "#3178c6",
    "#3776ab",
    "#61dafb",
    "#1572b6",
    "#e34c26",
    "#563d7c",
    "#b07219",
    "#00bcd4",
    "#ff9800",
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Values are read from process environment and optionally from `.env`.
    """

    github_api_base_url: str = "https://api.github.com"
    github_graphql_url: str = "https://api.github.com/graphql"
    github_oauth_url: str = "https://github.com/login/oauth"
    github_token: str | None = None
    github_client_id: str | None = None
    github_client_secret: str | None = None
    oauth_redirect_uri: str = "http://localhost:4000/auth/github/callback"
    client_app_url: str = "http://localhost:3000"
    proxy_server_url: str = "http://localhost:4000"
    user_agent: str = "ghdash"
    request_timeout_seconds: float = 20.0

    database_url: str | None = None
    cache_ttl_seconds: int = 600
    graphql_cache_ttl_seconds: int = 300

    per_page: int = 100
    max_pages: int = 10
    page_delay_seconds: float = 0.2
    language_concurrency: int = 6
    fallback_concurrency: int = 4
    reconciliation_threshold: float = 0.9
    contribution_repository_limit: int = 100
    contribution_node_limit: int = 100
    pull_request_review_sample: int = 10
    rate_limit_warning_threshold: int = 50
    language_palette: list[str] = DEFAULT_LANGUAGE_PALETTE

    log_level: str = "INFO"
    analytics_enabled: bool = False
    analytics_measurement_id: str | None = None

    sentry_dsn: str | None = None
    environment: str = "development"
    release: str | None = None
    sentry_traces_sample_rate: float = 0.1
    rate_limit_per_minute: int = 30
    rate_limit_window_seconds: int = 60

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
