"""
Wire shapes for the ZET auth and account services.
Field names are snake_case in Python and camelCase on the wire; both are accepted on input.
"""
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, model_validator
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """JSON body for the remote service: camelCase keys, unset optionals omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class TokenPair(WireModel):
    access_token: str
    refresh_token: str


class LoginCredentials(WireModel):
    """
    One of three shapes:
    username + password (+ revokeOtherTokens, fcmToken), refreshToken alone,
    or accessToken + refreshToken. Empty strings count as absent.
    """

    username: EmailStr | None = None
    password: str | None = None
    revoke_other_tokens: bool | None = None
    fcm_token: str | None = None
    refresh_token: str | None = None
    access_token: str | None = None

    @model_validator(mode="after")
    def _check_shape(self) -> "LoginCredentials":
        if self.refresh_token or self.has_password:
            return self
        raise ValueError(
            "Either (accessToken + refreshToken), refreshToken alone, "
            "or both username and password must be provided"
        )

    @property
    def has_token_pair(self) -> bool:
        return bool(self.access_token and self.refresh_token)

    @property
    def has_password(self) -> bool:
        return bool(self.username and self.password)


class RegisterCredentials(WireModel):
    email: EmailStr
    password: str
    confirm_password: str


class LoginResult(WireModel):
    access_token: str
    refresh_token: str
    expires_in: int
    via_token_refresh: bool = False
    via_access_token: bool = False


class Account(WireModel):
    id: int
    uid: str
    email: EmailStr
    first_name: str
    last_name: str
    e_purse_amount: float
    client_id: int | None = None
    language: int
    is_full_profile_activation_in_progress: bool
    messages: list[Any]
    processes: Any = None


class SessionState(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"
