"""
TrustNet Backend — Route Dependencies
=======================================

What:  FastAPI dependencies handing the process-wide collaborators to routes
       and authenticating the caller.
How:   Collaborators live on `app.state` (set by the lifespan handler, or
       directly by tests). The credential is read from the Authorization
       header, falling back to the session cookie the web client sets.
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from trustnet.config import settings
from trustnet.services.subscription_manager import SubscriptionManager
from trustnet.services.user_directory import AuthenticatedUser, UserDirectory

bearer_scheme = HTTPBearer(auto_error=False)


def get_subscription_manager(request: Request) -> SubscriptionManager:
    return request.app.state.subscription_manager


def get_user_directory(request: Request) -> UserDirectory:
    return request.app.state.user_directory


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    directory: UserDirectory = Depends(get_user_directory),
) -> AuthenticatedUser:
    """
    Authenticates the request before any route logic runs.

    Raises AuthenticationError (→ 401) on any verification failure.
    """
    token = credentials.credentials if credentials else None
    if not token:
        token = request.cookies.get(settings.auth_cookie_name)
    user = await directory.verify(token)
    request.state.user_id = user.user_id
    return user
