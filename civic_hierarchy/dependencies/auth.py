# civic_hierarchy/dependencies/auth.py
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from civic_hierarchy.models.actor import Actor
from civic_hierarchy.models.user import User
from civic_hierarchy.schemas.user import UserLogin
from civic_hierarchy.services.auth_service import AuthService, credentials_exception
from civic_hierarchy.services.user_service import UserService

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/token")

auth_service = AuthService()
user_service = UserService()


async def get_current_user(token: str = Depends(oauth2_scheme)) -> User:
    """
    Dependency that decodes the JWT token and fetches the current authenticated user.
    Raises HTTPException if the token is invalid or the user is not found/active.
    """
    user_id = auth_service.subject_from_token(token)
    user = await user_service.get_user_by_id(user_id)
    if user is None:
        raise credentials_exception("User not found")
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Inactive user"
        )
    return user


async def get_current_actor(current_user: User = Depends(get_current_user)) -> Actor:
    """Per-request snapshot of the caller handed to every jurisdiction check."""
    return Actor.from_user(current_user)


async def authenticate_user(login: str, password: str) -> User:
    user = await user_service.get_user_by_login(login)
    if not user or not auth_service.verify_password(password, user.hashed_password):
        raise credentials_exception("Incorrect mobile number, email or password")
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Inactive user"
        )
    return user


async def authenticate_user_dependency(user_login: UserLogin) -> User:
    """
    Dependency that authenticates a user based on mobile number (or email) and password.
    It returns the authenticated User object on success.
    """
    return await authenticate_user(user_login.login, user_login.password)


def create_access_token_dependency():
    """
    Dependency that provides a callable function to create JWT access tokens.
    This allows for easy injection into routes.
    """
    return auth_service.create_access_token
