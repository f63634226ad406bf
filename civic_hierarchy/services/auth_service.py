# civic_hierarchy/services/auth_service.py
from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import HTTPException, status

from civic_hierarchy.configs import env, configs

access_token_expire_minutes = int(
    env.get("ACCESS_TOKEN_EXPIRE_MINUTES")
    or configs.get("jwt").get("access_token_expire_minutes")
)
algorithm = configs.get("jwt").get("algorithm")
secret_key = env.get("SECRET_KEY")


def credentials_exception(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


class AuthService:
    def __init__(self):
        self.pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

    def hash_password(self, password: str) -> str:
        """Hashes a plain text password."""
        return self.pwd_context.hash(password)

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """Verifies a plain text password against a hashed password."""
        return self.pwd_context.verify(plain_password, hashed_password)

    def create_access_token(
        self, data: dict, expires_delta: Optional[timedelta] = None
    ) -> str:
        """
        Creates a JWT access token.
        Args:
            data (dict): The payload to encode in the token (e.g., {"sub": user_id}).
            expires_delta (Optional[timedelta]): Optional timedelta for token expiration.
                                                 If None, uses default from settings.
        Returns:
            str: The encoded JWT token.
        """
        to_encode = data.copy()
        if expires_delta:
            expire = datetime.utcnow() + expires_delta
        else:
            expire = datetime.utcnow() + timedelta(minutes=access_token_expire_minutes)
        to_encode.update({"exp": expire})
        return jwt.encode(to_encode, secret_key, algorithm=algorithm)

    def decode_access_token(self, token: str) -> dict:
        """
        Decodes and validates a JWT access token.
        Raises HTTPException if the token is invalid or expired.
        """
        try:
            return jwt.decode(token, secret_key, algorithms=[algorithm])
        except JWTError:
            raise credentials_exception()

    def subject_from_token(self, token: str) -> str:
        """The user id a token was issued for."""
        subject = self.decode_access_token(token).get("sub")
        if subject is None:
            raise credentials_exception()
        return subject
