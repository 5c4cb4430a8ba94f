"""Tests for the Flutterwave client over a mocked httpx transport."""

from decimal import Decimal

import httpx
import pytest

from src.core.exceptions import GatewayFailureError, GatewayTimeoutError
from src.services.payment_gateway import BankDetails, FlutterwaveGateway


def gateway_with(handler) -> FlutterwaveGateway:
    client = httpx.AsyncClient(
        base_url="https://api.flutterwave.test/v3", transport=httpx.MockTransport(handler)
    )
    return FlutterwaveGateway(client)


class TestVerify:
    async def test_successful_payment(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/v3/transactions/verify_by_reference"
            assert request.url.params["tx_ref"] == "FLW-REF-1"
            return httpx.Response(
                200,
                json={
                    "status": "success",
                    "data": {
                        "id": 4421,
                        "tx_ref": "FLW-REF-1",
                        "status": "successful",
                        "amount": 10750,
                        "currency": "NGN",
                        "payment_type": "card",
                    },
                },
            )

        result = await gateway_with(handler).verify("FLW-REF-1")

        assert result.successful
        assert result.amount == Decimal("10750")
        assert result.transaction_id == "4421"
        assert result.payment_method == "card"

    async def test_failed_charge_is_declined(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={"status": "success", "data": {"status": "failed", "amount": 10750}},
            )

        assert not (await gateway_with(handler).verify("FLW-REF-2")).successful

    async def test_unknown_reference_is_declined(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"status": "error", "message": "No transaction"})

        result = await gateway_with(handler).verify("missing")
        assert not result.successful
        assert result.amount == Decimal("0")

    async def test_server_error_is_gateway_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="Bad gateway")

        with pytest.raises(GatewayFailureError):
            await gateway_with(handler).verify("FLW-REF-3")

    async def test_timeout_is_gateway_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(GatewayTimeoutError) as exc_info:
            await gateway_with(handler).verify("FLW-REF-4")
        assert exc_info.value.code == "gateway_timeout"


class TestTransfer:
    async def test_transfer_posts_bank_details(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = request.read()
            return httpx.Response(
                200,
                json={"status": "success", "data": {"id": 991, "status": "NEW", "reference": "WD_1"}},
            )

        result = await gateway_with(handler).transfer(
            BankDetails(account_number="0123456789", bank_code="044"), Decimal("100000"), "WD_1"
        )

        assert result.successful
        assert result.transfer_id == "991"
        assert seen["path"] == "/v3/transfers"
        assert b'"account_bank":"044"' in seen["body"].replace(b" ", b"")

    async def test_rejected_transfer_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"status": "error", "message": "Insufficient balance"})

        with pytest.raises(GatewayFailureError) as exc_info:
            await gateway_with(handler).transfer(
                BankDetails(account_number="0123456789", bank_code="044"), Decimal("1"), "WD_2"
            )
        assert "Insufficient balance" in exc_info.value.message

    async def test_connection_error_is_gateway_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(GatewayFailureError):
            await gateway_with(handler).transfer(
                BankDetails(account_number="0123456789", bank_code="044"), Decimal("1"), "WD_3"
            )


class TestDirectoryCalls:
    async def test_list_banks(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/v3/banks/NG"
            return httpx.Response(
                200,
                json={
                    "status": "success",
                    "data": [{"id": 1, "code": "044", "name": "Access Bank"}],
                },
            )

        banks = await gateway_with(handler).list_banks("NG")
        assert [(b.code, b.name) for b in banks] == [("044", "Access Bank")]

    async def test_resolve_account(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={
                    "status": "success",
                    "data": {"account_number": "0123456789", "account_name": "ADA OKAFOR"},
                },
            )

        account = await gateway_with(handler).resolve_account("0123456789", "044")
        assert account.account_name == "ADA OKAFOR"

    async def test_refund(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/v3/transactions/4421/refund"
            return httpx.Response(
                200, json={"status": "success", "data": {"id": 77, "status": "completed"}}
            )

        refund = await gateway_with(handler).refund("4421", Decimal("500"))
        assert refund.successful
        assert refund.refund_id == "77"
