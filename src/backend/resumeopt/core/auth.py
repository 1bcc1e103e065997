from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

security = HTTPBearer(auto_error=False)


class CurrentUser(BaseModel):
    user_id: UUID
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def decode_token(token: str, secret: str, algorithm: str) -> CurrentUser:
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
        return CurrentUser(user_id=UUID(payload["sub"]), role=payload.get("role", "user"))
    except (JWTError, KeyError, ValueError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc


def get_optional_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> CurrentUser | None:
    """Anonymous requests (free ATS check) get None; a bad token is still a 401."""
    if credentials is None:
        return None
    settings = request.app.state.settings
    return decode_token(credentials.credentials, settings.jwt_secret, settings.jwt_algorithm)


def get_current_user(user: CurrentUser | None = Depends(get_optional_user)) -> CurrentUser:
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_admin_user(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user
