"""Bank Directory Service - cached bank list and account name lookups."""

from dataclasses import asdict

from src.core.config import get_settings
from src.services.payment_gateway import Bank, PaymentGateway, ResolvedAccount
from src.utils.cache import ReadThroughCache


class BankDirectoryService:
    """Bank list and account resolution through the gateway, read-through cached."""

    def __init__(self, gateway: PaymentGateway, cache: ReadThroughCache):
        self.gateway = gateway
        self.cache = cache
        self.settings = get_settings()

    async def list_banks(self, country: str = "NG") -> list[Bank]:
        async def load() -> list[dict[str, str]]:
            return [asdict(bank) for bank in await self.gateway.list_banks(country)]

        rows = await self.cache.get_or_load(
            f"banks:{country.upper()}", load, self.settings.banks_cache_ttl_seconds
        )
        return [Bank(**row) for row in rows]

    async def resolve_account(self, account_number: str, bank_code: str) -> ResolvedAccount:
        async def load() -> dict[str, str]:
            return asdict(await self.gateway.resolve_account(account_number, bank_code))

        row = await self.cache.get_or_load(
            f"account:{bank_code}:{account_number}",
            load,
            self.settings.account_cache_ttl_seconds,
        )
        return ResolvedAccount(**row)
