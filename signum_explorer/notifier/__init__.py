"""
Notifier: periodic watcher that turns new chain activity into chat messages.
"""

from signum_explorer.notifier.models import NotifierMessage
from signum_explorer.notifier.notifier import RAFFLE_ACCOUNT_RS, Notifier, PaymentView, describe_payment

__all__ = ["NotifierMessage", "Notifier", "PaymentView", "RAFFLE_ACCOUNT_RS", "describe_payment"]
