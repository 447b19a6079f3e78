"""YNAB API client.

This module provides the YNABClient class which handles the few read-only
calls the daemon needs:
- Listing budgets available to the token
- Fetching budget metadata (currency format)
- Fetching account balances for a budget

Balances are reported by YNAB in milli-units, which is also the unit the
rule engine works in, so no conversion happens here.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from ynab_alerts import __version__

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.ynab.com/v1"


class YNABAPIError(Exception):
    """Raised for YNAB API and transport errors."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        response_body: dict[str, Any] | None = None,
    ) -> None:
        """Initialize YNAB API error.

        Args:
            message: Error description.
            status_code: HTTP status code, if a response was received.
            response_body: Response JSON body if available.
        """
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body or {}


class CurrencyFormat(BaseModel):
    """How a budget displays currency amounts."""

    model_config = ConfigDict(extra="ignore")

    iso_code: str = ""
    example_format: str = ""
    decimal_digits: int = 2
    decimal_separator: str = "."
    symbol_first: bool = True
    group_separator: str = ","
    currency_symbol: str = ""
    display_symbol: bool = True


class Account(BaseModel):
    """Subset of YNAB account data.

    Attributes:
        id: Account identifier.
        name: Display name (the key used by account.balance("...")).
        balance: Current balance in milli-units.
        type: YNAB account type (checking, creditCard, ...).
        on_budget: Whether the account is on budget.
        closed: Whether the account is closed.
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    balance: int
    type: str = ""
    on_budget: bool = True
    closed: bool = False
    deleted: bool = False


class Budget(BaseModel):
    """Budget summary with optional currency format."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    currency_format: CurrencyFormat | None = None

    @property
    def currency_label(self) -> str:
        """Symbol if displayed, else ISO code, else empty."""
        cf = self.currency_format
        if cf is None:
            return ""
        if cf.display_symbol and cf.currency_symbol:
            return cf.currency_symbol
        return cf.iso_code


def format_money(milliunits: int, currency_format: CurrencyFormat | None = None) -> str:
    """Format a milli-unit amount for display.

    Example:
        >>> format_money(-1234560, CurrencyFormat(currency_symbol="$"))
        '-$1234.56'
    """
    sign = "-" if milliunits < 0 else ""
    decimals = 2
    if currency_format is not None:
        decimals = max(currency_format.decimal_digits, 0)

    amount = (Decimal(abs(milliunits)) / 1000).quantize(
        Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP
    )
    formatted = f"{amount:.{decimals}f}"

    cf = currency_format
    if cf is not None and cf.display_symbol and cf.currency_symbol:
        if cf.symbol_first:
            return f"{sign}{cf.currency_symbol}{formatted}"
        return f"{sign}{formatted} {cf.currency_symbol}"
    return f"{sign}{formatted}"


def balance_map(accounts: Iterable[Account]) -> dict[str, int]:
    """Map account names to balances in milli-units.

    Deleted accounts are skipped. When two accounts share a name the
    later one wins.
    """
    return {a.name: a.balance for a in accounts if not a.deleted}


def mask_token(token: str) -> str:
    """Mask a token for safe logging.

    Returns:
        Masked token showing first 4 and last 4 characters.
    """
    if len(token) <= 8:
        return "***"
    return f"{token[:4]}...{token[-4:]}"


class YNABClient:
    """Synchronous YNAB API client.

    The client supports both context manager and standalone usage.

    Example:
        >>> with YNABClient(token) as client:
        ...     balances = client.get_current_balances(budget_id)
    """

    def __init__(
        self,
        token: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 15.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize YNAB client.

        Args:
            token: YNAB personal access token.
            base_url: YNAB API base URL.
            timeout: HTTP request timeout in seconds.
            transport: Optional httpx transport (for testing).
        """
        self._token = token
        self._base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.Client | None = None

    @property
    def headers(self) -> dict[str, str]:
        """Get default request headers."""
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/json",
            "User-Agent": f"ynab-alerts/{__version__}",
        }

    def __enter__(self) -> YNABClient:
        """Enter context."""
        self._ensure_client()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Exit context."""
        self.close()

    def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def _ensure_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                base_url=self._base_url,
                headers=self.headers,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    def _get(self, path: str) -> dict[str, Any]:
        """GET a path and return the response's ``data`` object.

        Raises:
            YNABAPIError: On transport errors, non-2xx responses or an
                unexpected body shape.
        """
        client = self._ensure_client()
        try:
            response = client.get(path)
        except httpx.TimeoutException as e:
            msg = f"YNAB request timeout: {path}"
            raise YNABAPIError(msg) from e
        except httpx.RequestError as e:
            msg = f"YNAB request error: {e}"
            raise YNABAPIError(msg) from e

        if response.status_code == 401:
            raise YNABAPIError("YNAB API authentication failed", status_code=401)

        if response.status_code >= 300:
            try:
                body = response.json()
            except ValueError:
                body = {"error": {"detail": response.text}}
            detail = body.get("error", {}).get("detail", "Unknown error")
            raise YNABAPIError(
                f"YNAB API error: {response.status_code} - {detail}",
                status_code=response.status_code,
                response_body=body,
            )

        try:
            payload = response.json()
        except ValueError as e:
            msg = f"YNAB API returned invalid JSON for {path}"
            raise YNABAPIError(msg, status_code=response.status_code) from e

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            msg = f"YNAB API response for {path} has no data object"
            raise YNABAPIError(msg, status_code=response.status_code)
        return data

    def get_budgets(self) -> list[Budget]:
        """Fetch budgets available to the token."""
        data = self._get("/budgets")
        try:
            return [Budget.model_validate(b) for b in data.get("budgets", [])]
        except ValidationError as e:
            msg = f"Unexpected budgets payload: {e}"
            raise YNABAPIError(msg) from e

    def get_budget(self, budget_id: str) -> Budget:
        """Fetch a single budget's metadata (including currency format)."""
        data = self._get(f"/budgets/{budget_id}")
        try:
            return Budget.model_validate(data.get("budget", {}))
        except ValidationError as e:
            msg = f"Unexpected budget payload: {e}"
            raise YNABAPIError(msg) from e

    def get_accounts(self, budget_id: str) -> list[Account]:
        """Fetch all accounts for a budget."""
        data = self._get(f"/budgets/{budget_id}/accounts")
        try:
            accounts = [Account.model_validate(a) for a in data.get("accounts", [])]
        except ValidationError as e:
            msg = f"Unexpected accounts payload: {e}"
            raise YNABAPIError(msg) from e
        logger.debug("Fetched %d account(s) for budget %s", len(accounts), budget_id)
        return accounts

    def get_current_balances(self, budget_id: str) -> dict[str, int]:
        """Fetch account balances keyed by account name (milli-units)."""
        return balance_map(self.get_accounts(budget_id))

    def __repr__(self) -> str:
        """Get string representation."""
        return f"YNABClient(base_url={self._base_url!r}, token={mask_token(self._token)!r})"
