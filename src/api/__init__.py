"""API module - route handlers and common dependencies."""

from fastapi import FastAPI

from src.api.deps import AdminUser, CurrentUser, WalletOwner

__all__ = [
    "AdminUser",
    "CurrentUser",
    "WalletOwner",
    "register_routers",
]


def register_routers(app: FastAPI) -> None:
    """Register all API routers to the application.

    Args:
        app: FastAPI application instance
    """
    # Wallets & withdrawals
    from src.api.wallets import router as wallets_router
    from src.api.withdrawals import router as withdrawals_router

    app.include_router(wallets_router, prefix="/api/wallets", tags=["Wallets"])
    app.include_router(withdrawals_router, prefix="/api/withdrawals", tags=["Withdrawals"])

    # Payments & ledger
    from src.api.ledger import router as ledger_router
    from src.api.payments import router as payments_router

    app.include_router(payments_router, prefix="/api/payments", tags=["Payments"])
    app.include_router(ledger_router, prefix="/api")

    # Tax configuration
    from src.api.tax_policies import router as tax_policies_router

    app.include_router(tax_policies_router, prefix="/api")

    # Bank directory
    from src.api.banks import router as banks_router

    app.include_router(banks_router, prefix="/api/banks", tags=["Banks"])
