"""
Authentication dependency for the generated endpoints.

Only applied when the require-authentication switch is on. The policy is a
bearer-token check against the configured tokens; deployments with their
own policy pass a different dependency to the binder.
"""

import secrets
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..constants import HTTPStatus

bearer_scheme = HTTPBearer(auto_error=False)


def require_caller(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    if credentials is None:
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    tokens = request.app.state.settings.api_tokens
    if not any(secrets.compare_digest(credentials.credentials.encode(), token.encode()) for token in tokens):
        raise HTTPException(status_code=HTTPStatus.FORBIDDEN, detail="Invalid token")
    return credentials.credentials
