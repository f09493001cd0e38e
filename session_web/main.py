"""
Session Web: local HTTP front for the identity client.
One AuthManager per process; login, register, logout, status, account, balance.
Port 8000 by default; loopback only, the session is not per-caller.
"""
import logging
from typing import Any

from fastapi import Body, FastAPI, HTTPException
from fastapi.responses import HTMLResponse

from identity_client.account import AccountClient
from identity_client.errors import (
    AuthError,
    CredentialValidationError,
    InsufficientCredentialsError,
    LoginFailedError,
    RefreshFailedError,
    RegistrationFailedError,
    SessionExpiredError,
)
from identity_client.manager import AuthManager
from identity_client.models import Account, LoginResult
from session_web.config import HOST, LOG_LEVEL, PORT

app = FastAPI(title="Session Web", version="0.1.0")

manager = AuthManager()
accounts = AccountClient(manager)


def _http_error(status_code: int, error: str, exc: Exception) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={"error": error, "error_description": str(exc)},
    )


def _account_error(exc: AuthError) -> HTTPException:
    """No usable session (expired, or its refresh was refused) -> 401; other upstream failures -> 502."""
    if isinstance(exc, (SessionExpiredError, RefreshFailedError)):
        return _http_error(401, "session_expired", exc)
    return _http_error(502, "upstream_error", exc)


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok", "service": "session_web"}


@app.get("/", response_class=HTMLResponse)
def home():
    return HTMLResponse(
        """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>ZET session</title></head>
<body>
  <h1>ZET session</h1>
  <ul>
    <li>POST /login, POST /register, POST /logout</li>
    <li><a href="/status">GET /status</a></li>
    <li><a href="/account">GET /account</a> (requires login)</li>
    <li><a href="/balance">GET /balance</a> (requires login)</li>
  </ul>
</body>
</html>"""
    )


@app.post("/login", response_model=LoginResult)
async def login(payload: Any = Body(...)):
    """
    Log in with username/password, a refresh token, or an access + refresh token pair.
    Body uses the service's camelCase keys.
    """
    try:
        return await manager.login(payload)
    except CredentialValidationError as e:
        raise _http_error(422, "invalid_request", e)
    except InsufficientCredentialsError as e:
        raise _http_error(400, "insufficient_credentials", e)
    except LoginFailedError as e:
        raise _http_error(401, "login_failed", e)


@app.post("/register")
async def register(payload: Any = Body(...)):
    try:
        await manager.register(payload)
    except CredentialValidationError as e:
        raise _http_error(422, "invalid_request", e)
    except RegistrationFailedError as e:
        raise _http_error(400, "registration_failed", e)
    return {"status": "registered"}


@app.post("/logout")
async def logout():
    await manager.logout()
    return {"status": "logged_out"}


@app.get("/status")
def session_status():
    """No network calls: reports the local session only."""
    return {"authenticated": manager.is_authenticated(), "state": manager.state.value}


@app.get("/account", response_model=Account)
async def account():
    try:
        return await accounts.get_account()
    except AuthError as e:
        raise _account_error(e)


@app.get("/balance")
async def balance():
    try:
        amount = await accounts.get_balance()
    except AuthError as e:
        raise _account_error(e)
    return {"ePurseAmount": amount}


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(
        "session_web.main:app",
        host=HOST,
        port=PORT,
        reload=True,
    )
