from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from bunqsys.domains.monetary_account import Amount

if TYPE_CHECKING:
    from bunqsys.client import BunqClient


@dataclass(frozen=True)
class LabelMonetaryAccount:
    iban: str | None
    display_name: str
    country: str

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> LabelMonetaryAccount:
        return cls(
            iban=data.get("iban"),
            display_name=str(data.get("display_name", "")),
            country=str(data.get("country", "")),
        )


@dataclass(frozen=True)
class Payment:
    id: int
    created: str
    monetary_account_id: int
    amount: Amount
    alias: LabelMonetaryAccount
    counterparty_alias: LabelMonetaryAccount
    description: str
    type: str
    sub_type: str
    merchant_reference: str | None
    balance_after_mutation: Amount

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Payment:
        return cls(
            id=int(data["id"]),
            created=str(data["created"]),
            monetary_account_id=int(data["monetary_account_id"]),
            amount=Amount.from_mapping(data["amount"]),
            alias=LabelMonetaryAccount.from_mapping(data["alias"]),
            counterparty_alias=LabelMonetaryAccount.from_mapping(data["counterparty_alias"]),
            description=str(data.get("description", "")),
            type=str(data.get("type", "")),
            sub_type=str(data.get("sub_type", "")),
            merchant_reference=data.get("merchant_reference"),
            balance_after_mutation=Amount.from_mapping(data["balance_after_mutation"]),
        )

    def as_row(self) -> dict[str, Any]:
        """Flat representation for tabular output."""
        return {
            "id": self.id,
            "created": self.created,
            "amount": self.amount.value,
            "currency": self.amount.currency,
            "counterparty": self.counterparty_alias.display_name,
            "iban": self.counterparty_alias.iban,
            "description": self.description,
            "type": self.type,
            "balance_after": self.balance_after_mutation.value,
        }


PAYMENT_VARIANTS = {"Payment": Payment.from_mapping}


def list_payments(client: BunqClient, monetary_account_id: int, count: int = 200) -> list[Payment]:
    """Most recent payments of one account, newest first (``count`` caps at 200)."""
    path = f"/user/{client.user_id}/monetary-account/{monetary_account_id}/payment"
    envelope = client.get_envelope(path, PAYMENT_VARIANTS, params={"count": count})
    return envelope.find_all("Payment")
