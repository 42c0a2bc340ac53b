from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from hrms.core.rbac import Role


class Identity(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: str = ""


class AuthSession(BaseModel):
    """The remote store's view of a signed-in identity."""

    model_config = ConfigDict(frozen=True)

    identity: Identity
    access_token: str = ""
    event: str = "INITIAL_SESSION"


class Profile(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: str = ""
    role: Role


class SessionState(BaseModel):
    """Immutable snapshot of one browser session's authentication state."""

    model_config = ConfigDict(frozen=True)

    identity: Optional[Identity] = None
    profile: Optional[Profile] = None
    is_loading: bool = True
    degraded: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None


class SignUpForm(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    role: Role = Role.EMPLOYEE


class SessionPublic(BaseModel):
    authenticated: bool
    loading: bool
    user_id: Optional[str] = None
    email: Optional[str] = None
    role: Optional[Role] = None
    degraded: bool = False
