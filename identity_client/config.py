"""
Identity client configuration. ZET public API endpoints and client identification.
No secrets in this file; credentials are supplied by the caller at login.
"""
import os

# Auth service (login, refreshTokens, logout)
AUTH_SERVICE_URL = os.environ.get(
    "ZET_AUTH_SERVICE_URL", "https://api.zet.hr/AuthService.Api/api/auth"
).rstrip("/")

# Account service (register, account profile)
ACCOUNT_SERVICE_URL = os.environ.get(
    "ZET_ACCOUNT_SERVICE_URL", "https://api.zet.hr/AccountService.Api/api/account"
).rstrip("/")

# Sent on every outbound call; the service rejects requests that do not look like the mobile app
HEADERS = {
    "accept": "application/json, text/plain, */*",
    "appuid": "ZET.Mobile",
    "Content-Type": "application/json",
    "language": "hr",
    "User-Agent": "okhttp/4.9.2",
    "x-tenant": "KingICT_ZET_Public",
}

# A session this close to its literal expiry is treated as already expired (seconds)
TOKEN_EXPIRY_BUFFER_SECONDS = 120

# Lifetime assumed when the access token carries no readable exp claim (seconds)
DEFAULT_TOKEN_LIFETIME_SECONDS = 900

# Transport timeout for every call to the remote service (seconds)
HTTP_TIMEOUT_SECONDS = float(os.environ.get("ZET_HTTP_TIMEOUT", "10.0"))
