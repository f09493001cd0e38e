"""
Authentication token lifecycle for the ZET identity service.

One AuthManager owns at most one Session. login() picks a strategy (reuse the access token,
exchange the refresh token, or log in with username/password); get_access_token() hands out
the bearer token and refreshes it when it is within the expiry buffer. Concurrent callers that
need a refresh share a single in-flight refresh call.

The manager belongs to one event loop; it is not safe to share across threads.
"""
import asyncio
import logging
import time
from collections.abc import Callable, Mapping
from typing import Any

import httpx
from pydantic import ValidationError

from identity_client.config import (
    ACCOUNT_SERVICE_URL,
    AUTH_SERVICE_URL,
    HEADERS,
    HTTP_TIMEOUT_SECONDS,
    TOKEN_EXPIRY_BUFFER_SECONDS,
)
from identity_client.errors import (
    AuthError,
    CredentialValidationError,
    InsufficientCredentialsError,
    LoginFailedError,
    NotAuthenticatedError,
    ProtocolError,
    RefreshFailedError,
    RegistrationFailedError,
    SessionExpiredError,
    ShapeMismatchError,
    format_validation_errors,
)
from identity_client.models import (
    LoginCredentials,
    LoginResult,
    RegisterCredentials,
    SessionState,
    TokenPair,
)
from identity_client.token_store import Session, build_session, read_expiry_claim

logger = logging.getLogger(__name__)


def response_message(response: httpx.Response) -> str:
    """Human-readable message from an error response: body "message", else reason phrase."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason_phrase or "Unknown error"


def _parse_token_pair(response: httpx.Response, what: str) -> TokenPair:
    try:
        return TokenPair.model_validate(response.json())
    except ValueError as e:
        # pydantic ValidationError is a ValueError; so is a JSON decode error
        issues = format_validation_errors(e) if isinstance(e, ValidationError) else [str(e)]
        raise ShapeMismatchError(f"Failed to parse {what} response", issues) from e


def _retrieve_outcome(task: asyncio.Task) -> None:
    """Mark a finished refresh's exception as seen, even when every waiter was cancelled."""
    if not task.cancelled():
        task.exception()


class AuthManager:
    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        auth_url: str = AUTH_SERVICE_URL,
        account_url: str = ACCOUNT_SERVICE_URL,
        clock: Callable[[], float] = time.time,
        buffer_seconds: float = TOKEN_EXPIRY_BUFFER_SECONDS,
    ):
        self._client = client
        self.auth_url = auth_url.rstrip("/")
        self.account_url = account_url.rstrip("/")
        self._clock = clock
        self.buffer_seconds = buffer_seconds
        self._session: Session | None = None
        self._refresh_task: asyncio.Task | None = None

    # --- state (no I/O) ---

    def is_authenticated(self) -> bool:
        session = self._session
        return session is not None and session.is_valid(self._clock(), self.buffer_seconds)

    @property
    def state(self) -> SessionState:
        if self._session is None:
            return SessionState.ANONYMOUS
        if self._refresh_task is not None:
            return SessionState.REFRESHING
        return SessionState.AUTHENTICATED

    async def get_access_token(self) -> str:
        """Bearer token for authenticated calls; refreshes the session first when it is stale."""
        session = self._session
        if session is None:
            raise NotAuthenticatedError("Not authenticated. Please login first.")
        if session.is_valid(self._clock(), self.buffer_seconds):
            return session.access_token

        await self._ensure_refreshed()

        session = self._session
        if session is None or not session.is_valid(self._clock(), self.buffer_seconds):
            raise SessionExpiredError("Token expired. Please login again.")
        return session.access_token

    # --- public operations ---

    async def login(self, credentials: LoginCredentials | Mapping[str, Any]) -> LoginResult:
        """
        Establish a session. Strategies in order:
        1. accessToken + refreshToken: reuse the pair if the access token is still fresh (no I/O).
        2. refreshToken: exchange it for a new pair; any failure falls through.
        3. username + password: password login; failure here is final.
        """
        validated = self._validate_login(credentials)

        if validated.has_token_pair:
            result = self._try_reuse_access_token(validated.access_token, validated.refresh_token)
            if result is not None:
                return result

        if validated.refresh_token:
            result = await self._try_refresh_token(validated.refresh_token)
            if result is not None:
                return result

        if not validated.has_password:
            raise InsufficientCredentialsError(
                "Token login failed and no username/password were supplied; no further login strategy is eligible."
            )
        return await self._password_login(validated)

    async def register(self, credentials: RegisterCredentials | Mapping[str, Any]) -> None:
        if isinstance(credentials, RegisterCredentials):
            validated = credentials
        else:
            try:
                validated = RegisterCredentials.model_validate(credentials)
            except ValidationError as e:
                raise CredentialValidationError(
                    "Invalid registration data", format_validation_errors(e)
                ) from e
        if validated.password != validated.confirm_password:
            raise CredentialValidationError("Passwords do not match.")

        try:
            response = await self._post(f"{self.account_url}/register", validated.to_wire())
        except ProtocolError as e:
            raise RegistrationFailedError(None, f"Registration failed: {e.message}") from e
        if response.status_code != 200:
            raise RegistrationFailedError(
                response.status_code, f"Registration failed: {response_message(response)}"
            )
        logger.info("Registration accepted")

    async def logout(self) -> None:
        """
        Drop the session and any pending refresh, then notify the service (best effort).
        Local teardown happens first so a refresh finishing meanwhile cannot reinstall the session.
        """
        session = self._session
        self._clear_session()
        logger.info("Logged out")
        if session is not None and session.refresh_token:
            try:
                await self._post(f"{self.auth_url}/logout", {"refreshToken": session.refresh_token})
            except AuthError as e:
                logger.debug("Logout notification failed; local session already cleared: %s", e)

    # --- login strategies ---

    def _validate_login(self, credentials: LoginCredentials | Mapping[str, Any]) -> LoginCredentials:
        if isinstance(credentials, LoginCredentials):
            return credentials
        try:
            return LoginCredentials.model_validate(credentials)
        except ValidationError as e:
            raise CredentialValidationError("Invalid login credentials", format_validation_errors(e)) from e

    def _result(self, *, via_token_refresh: bool = False, via_access_token: bool = False) -> LoginResult:
        session = self._session
        return LoginResult(
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            expires_in=session.expires_in(self._clock()),
            via_token_refresh=via_token_refresh,
            via_access_token=via_access_token,
        )

    def _try_reuse_access_token(self, access_token: str, refresh_token: str) -> LoginResult | None:
        exp = read_expiry_claim(access_token)
        if exp is None or exp <= self._clock() + self.buffer_seconds:
            logger.debug("Supplied access token is unreadable or near expiry; not reusing it")
            return None
        self._store(TokenPair(access_token=access_token, refresh_token=refresh_token), expires_at=exp)
        logger.info("Session adopted from supplied access token")
        return self._result(via_access_token=True)

    async def _try_refresh_token(self, refresh_token: str) -> LoginResult | None:
        try:
            tokens = await self._request_refresh(refresh_token)
        except AuthError as e:
            logger.debug("Refresh token exchange at login failed: %s", e)
            return None
        self._store(tokens)
        logger.info("Session established via refresh token")
        return self._result(via_token_refresh=True)

    async def _password_login(self, validated: LoginCredentials) -> LoginResult:
        body = validated.model_dump(
            mode="json",
            by_alias=True,
            exclude_none=True,
            include={"username", "password", "revoke_other_tokens", "fcm_token"},
        )
        try:
            response = await self._post(f"{self.auth_url}/login", body)
        except ProtocolError as e:
            raise LoginFailedError(None, f"Login failed: {e.message}") from e
        if response.status_code != 200:
            raise LoginFailedError(response.status_code, f"Login failed: {response_message(response)}")
        try:
            tokens = _parse_token_pair(response, "login")
        except ShapeMismatchError as e:
            raise LoginFailedError(response.status_code, str(e)) from e
        self._store(tokens)
        logger.info("Session established via password login")
        return self._result()

    # --- coordinated refresh ---

    async def _ensure_refreshed(self) -> None:
        """Join the in-flight refresh, or start one. Every waiter sees the same outcome."""
        task = self._refresh_task
        if task is None:
            session = self._session
            if session is None or not session.refresh_token:
                self._clear_session()
                raise RefreshFailedError(None, "No refresh token available.")
            # the token is bound now; a logout before the task's first step must not change it
            task = asyncio.ensure_future(self._refresh_session(session.refresh_token))
            task.add_done_callback(_retrieve_outcome)
            self._refresh_task = task
        # shield: a cancelled waiter must not cancel the refresh the others are waiting on
        await asyncio.shield(task)

    async def _refresh_session(self, refresh_token: str) -> None:
        me = asyncio.current_task()
        try:
            tokens = await self._request_refresh(refresh_token)
        except AuthError as e:
            if self._refresh_task is not me:
                logger.debug("Ignoring refresh failure; session was replaced while refreshing: %s", e)
                return
            self._clear_session()
            logger.warning("Session refresh failed, session cleared: %s", e)
            raise
        else:
            if self._refresh_task is me:
                self._store(tokens)
                logger.info("Session refreshed")
            else:
                logger.debug("Discarding refresh result; session was replaced while refreshing")
        finally:
            if self._refresh_task is me:
                self._refresh_task = None

    async def _request_refresh(self, refresh_token: str) -> TokenPair:
        try:
            response = await self._post(f"{self.auth_url}/refreshTokens", {"refreshToken": refresh_token})
        except ProtocolError as e:
            raise RefreshFailedError(None, f"Token refresh failed: {e.message}. Please login again.") from e
        if response.status_code != 200:
            raise RefreshFailedError(
                response.status_code,
                f"Token refresh failed: {response_message(response)}. Please login again.",
            )
        return _parse_token_pair(response, "refresh")

    # --- session slot ---

    def _store(self, tokens: TokenPair, expires_at: float | None = None) -> None:
        self._session = build_session(tokens, self._clock(), expires_at)
        # a refresh still in flight belongs to the replaced session and must not touch this one
        self._refresh_task = None

    def _clear_session(self) -> None:
        self._session = None
        self._refresh_task = None

    # --- transport ---

    async def _post(self, url: str, body: dict[str, Any]) -> httpx.Response:
        """POST JSON with the identification headers. Transport failures become ProtocolError."""
        try:
            if self._client is not None:
                return await self._client.post(url, json=body, headers=HEADERS)
            async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as client:
                return await client.post(url, json=body, headers=HEADERS)
        except httpx.HTTPError as e:
            raise ProtocolError(None, str(e) or type(e).__name__) from e
