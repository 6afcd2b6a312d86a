from fastapi import HTTPException
from fastapi import Request
from fastapi.security import HTTPAuthorizationCredentials
from fastapi.security import HTTPBearer

bearer_scheme = HTTPBearer(auto_error=False)

TOKEN_COOKIE = "github_token"
STATE_COOKIE = "oauth_state"

MISSING_TOKEN_DETAIL = "Authorization Bearer token is required"


def request_token(
    request: Request, credentials: HTTPAuthorizationCredentials | None
) -> str | None:
    """Return the Bearer token when one is sent, else the session cookie token.

    Raises:
        HTTPException: If an Authorization header is sent but is not a
            usable Bearer token.
    """

    if credentials is not None:
        token = credentials.credentials.strip()
        if credentials.scheme.lower() != "bearer" or not token:
            raise HTTPException(status_code=401, detail=MISSING_TOKEN_DETAIL)
        return token

    return request.cookies.get(TOKEN_COOKIE, "").strip() or None
