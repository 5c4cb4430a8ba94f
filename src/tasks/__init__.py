"""Settlement Tasks Module."""

from src.tasks.celery_app import celery_app
from src.tasks.settlement import approve_withdrawal, capture_payment

__all__ = [
    "celery_app",
    "capture_payment",
    "approve_withdrawal",
]
