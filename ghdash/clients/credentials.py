import logging

from ghdash.core.cache import KeyValueStore

logger = logging.getLogger(__name__)

CREDENTIAL_KEY = "auth.github_token"


class CredentialResolver:
    """Find the bearer credential for direct GitHub calls.

    The persisted value wins over the configured default. A `None` result
    means requests have to go through the proxy server.
    """

    def __init__(
        self,
        store: KeyValueStore,
        default: str | None = None,
        key: str = CREDENTIAL_KEY,
    ) -> None:
        self.store = store
        self.default = default
        self.key = key

    def resolve(self) -> str | None:
        try:
            entry = self.store.get(self.key)
        except Exception as exc:
            logger.debug("Credential lookup failed: %s", exc)
            entry = None

        if entry is not None and isinstance(entry.payload, str) and entry.payload.strip():
            return entry.payload.strip()
        if self.default and self.default.strip():
            return self.default.strip()
        return None

