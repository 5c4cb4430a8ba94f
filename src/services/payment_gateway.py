"""Payment gateway interface and Flutterwave v3 client.

The settlement engine only consumes outcomes from the gateway:
payment verified or not, transfer accepted or not, refund accepted or not.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import httpx

from src.core.config import get_settings
from src.core.exceptions import GatewayFailureError, GatewayTimeoutError

logger = logging.getLogger(__name__)


@dataclass
class GatewayVerification:
    """Outcome of verifying a customer payment."""

    successful: bool
    amount: Decimal
    reference: str
    transaction_id: str | None = None
    currency: str | None = None
    payment_method: str | None = None


@dataclass
class BankDetails:
    """Destination account of a payout."""

    account_number: str
    bank_code: str
    account_name: str | None = None


@dataclass
class GatewayTransfer:
    """Outcome of initiating a payout transfer."""

    successful: bool
    reference: str
    transfer_id: str | None = None
    message: str | None = None


@dataclass
class GatewayRefund:
    """Outcome of refunding a captured payment."""

    successful: bool
    refund_id: str | None = None
    message: str | None = None


@dataclass
class Bank:
    code: str
    name: str


@dataclass
class ResolvedAccount:
    account_number: str
    account_name: str


class PaymentGateway(ABC):
    """Abstract payment gateway.

    Implementations raise GatewayTimeoutError when the provider does not
    answer in time and GatewayFailureError on transport or protocol errors.
    A declined payment is not an error: verify() returns successful=False.
    """

    @abstractmethod
    async def verify(self, reference: str) -> GatewayVerification:
        """Verify a customer payment by its reference."""

    @abstractmethod
    async def transfer(
        self,
        bank: BankDetails,
        amount: Decimal,
        reference: str,
        narration: str = "",
    ) -> GatewayTransfer:
        """Pay out to a bank account."""

    @abstractmethod
    async def refund(self, reference: str, amount: Decimal) -> GatewayRefund:
        """Refund (part of) a captured payment."""

    @abstractmethod
    async def list_banks(self, country: str = "NG") -> list[Bank]:
        """Banks supported for payouts in a country."""

    @abstractmethod
    async def resolve_account(self, account_number: str, bank_code: str) -> ResolvedAccount:
        """Look up the holder name of a bank account."""


class FlutterwaveGateway(PaymentGateway):
    """Flutterwave v3 REST client on httpx."""

    def __init__(self, client: httpx.AsyncClient | None = None):
        self.settings = get_settings()
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.settings.gateway_base_url,
                headers={"Authorization": f"Bearer {self.settings.gateway_secret_key}"},
                timeout=self.settings.gateway_timeout_seconds,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and return the ``data`` envelope of a success answer.

        Raises:
            GatewayTimeoutError: Request timed out
            GatewayFailureError: Transport error, non-2xx or status != success
        """
        client = await self._get_client()
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.error(f"Gateway timeout: {method} {path}")
            raise GatewayTimeoutError("Payment gateway timed out", {"path": path}) from e
        except httpx.RequestError as e:
            logger.error(f"Gateway request error: {method} {path} - {e}")
            raise GatewayFailureError("Payment gateway unreachable", {"path": path}) from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400 or body.get("status") != "success":
            message = body.get("message") or response.text[:200]
            logger.error(f"Gateway error: {method} {path} [{response.status_code}] {message}")
            raise GatewayFailureError(
                message or "Payment gateway rejected the request",
                {"path": path, "status_code": response.status_code},
            )

        return body.get("data") or {}

    async def verify(self, reference: str) -> GatewayVerification:
        client = await self._get_client()
        try:
            response = await client.get(
                "/transactions/verify_by_reference", params={"tx_ref": reference}
            )
        except httpx.TimeoutException as e:
            logger.error(f"Gateway timeout verifying {reference}")
            raise GatewayTimeoutError("Payment gateway timed out", {"reference": reference}) from e
        except httpx.RequestError as e:
            logger.error(f"Gateway request error verifying {reference}: {e}")
            raise GatewayFailureError("Payment gateway unreachable", {"reference": reference}) from e

        # An unknown reference is a declined payment, not a gateway failure
        if response.status_code == 404:
            return GatewayVerification(successful=False, amount=Decimal("0"), reference=reference)
        if response.status_code >= 500:
            raise GatewayFailureError(
                "Payment gateway error", {"reference": reference, "status_code": response.status_code}
            )

        body = response.json()
        data = body.get("data") or {}
        return GatewayVerification(
            successful=body.get("status") == "success" and data.get("status") == "successful",
            amount=Decimal(str(data.get("amount", 0))),
            reference=data.get("tx_ref", reference),
            transaction_id=str(data["id"]) if data.get("id") is not None else None,
            currency=data.get("currency"),
            payment_method=data.get("payment_type"),
        )

    async def transfer(
        self,
        bank: BankDetails,
        amount: Decimal,
        reference: str,
        narration: str = "",
    ) -> GatewayTransfer:
        data = await self._request(
            "POST",
            "/transfers",
            json={
                "account_bank": bank.bank_code,
                "account_number": bank.account_number,
                "amount": str(amount),
                "narration": narration or f"Wallet withdrawal {reference}",
                "currency": self.settings.currency,
                "reference": reference,
                "callback_url": self.settings.transfer_callback_url or None,
                "debit_currency": self.settings.currency,
            },
        )
        return GatewayTransfer(
            successful=data.get("status") != "FAILED",
            reference=data.get("reference", reference),
            transfer_id=str(data["id"]) if data.get("id") is not None else None,
            message=data.get("complete_message"),
        )

    async def refund(self, reference: str, amount: Decimal) -> GatewayRefund:
        data = await self._request(
            "POST", f"/transactions/{reference}/refund", json={"amount": str(amount)}
        )
        return GatewayRefund(
            successful=data.get("status") in ("completed", "pending", "success"),
            refund_id=str(data["id"]) if data.get("id") is not None else None,
            message=data.get("comments"),
        )

    async def list_banks(self, country: str = "NG") -> list[Bank]:
        data = await self._request("GET", f"/banks/{country}")
        return [Bank(code=str(item["code"]), name=item["name"]) for item in data or []]

    async def resolve_account(self, account_number: str, bank_code: str) -> ResolvedAccount:
        data = await self._request(
            "POST",
            "/accounts/resolve",
            json={"account_number": account_number, "account_bank": bank_code},
        )
        return ResolvedAccount(
            account_number=data.get("account_number", account_number),
            account_name=data.get("account_name", ""),
        )
