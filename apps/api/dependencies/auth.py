from typing import Annotated

from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from apps.api.services.users import UserRepository
from apps.api.tickets.models import ActorContext, UserSummary

NOT_AUTHENTICATED = "Not authenticated"
INVALID_CREDENTIALS = "Invalid authentication credentials"

bearer_scheme = HTTPBearer(auto_error=False)


async def get_user_repository(request: Request) -> UserRepository:
    repository = getattr(request.app.state, "user_repository", None)
    if repository is None:
        raise HTTPException(status_code=503, detail="User directory is not available")
    return repository


async def resolve_user_from_token(token: str, repository: UserRepository) -> UserSummary:
    """Return the user owning the provided bearer token."""

    user = await repository.get_by_token(token)
    if user is None:
        raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)
    return user


async def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)],
) -> UserSummary:
    """Authenticate the request before any ticket logic runs.

    Token issuing is out of scope: tokens are opaque strings stored on the
    user record, so the lookup is a single query.
    """

    token = credentials.credentials if credentials is not None else None
    if not token:
        raise HTTPException(status_code=401, detail=NOT_AUTHENTICATED)

    repository = await get_user_repository(request)
    return await resolve_user_from_token(token, repository)


def actor_of(user: UserSummary) -> ActorContext:
    return ActorContext(id=user.id, role=user.role)


CurrentUser = Annotated[UserSummary, Depends(get_current_user)]
