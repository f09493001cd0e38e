"""
Account profile and stored-value (ePurse) balance. Authenticated with the manager's bearer token.
"""
import logging

import httpx
from pydantic import ValidationError

from identity_client.config import HEADERS, HTTP_TIMEOUT_SECONDS
from identity_client.errors import ProtocolError, ShapeMismatchError, format_validation_errors
from identity_client.manager import AuthManager, response_message
from identity_client.models import Account

logger = logging.getLogger(__name__)


class AccountClient:
    def __init__(self, manager: AuthManager, client: httpx.AsyncClient | None = None):
        self.manager = manager
        self._client = client

    async def get_account(self) -> Account:
        """GET the account profile. Raises SessionExpiredError if no valid session can be obtained."""
        access = await self.manager.get_access_token()
        headers = {**HEADERS, "Authorization": f"Bearer {access}"}
        url = self.manager.account_url
        try:
            if self._client is not None:
                r = await self._client.get(url, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as client:
                    r = await client.get(url, headers=headers)
        except httpx.HTTPError as e:
            raise ProtocolError(None, f"Account request failed: {e}") from e

        if r.status_code != 200:
            raise ProtocolError(r.status_code, f"Account request failed: {response_message(r)}")
        try:
            return Account.model_validate(r.json())
        except ValidationError as e:
            raise ShapeMismatchError("Failed to parse account response", format_validation_errors(e)) from e
        except ValueError as e:
            raise ShapeMismatchError("Failed to parse account response", [str(e)]) from e

    async def get_balance(self) -> float:
        account = await self.get_account()
        logger.debug("Fetched ePurse balance for account %s", account.uid)
        return account.e_purse_amount
