"""Read-only resource calls made through the authenticated client."""

from bunqsys.domains.monetary_account import (
    AccountKind,
    AccountStatus,
    Amount,
    MonetaryAccount,
    list_monetary_accounts,
)
from bunqsys.domains.payment import LabelMonetaryAccount, Payment, list_payments

__all__ = [
    "AccountKind",
    "AccountStatus",
    "Amount",
    "LabelMonetaryAccount",
    "MonetaryAccount",
    "Payment",
    "list_monetary_accounts",
    "list_payments",
]
