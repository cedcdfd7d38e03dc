"""Monetary accounts of the session user.

bunq returns each account wrapped in its own variant name
(``MonetaryAccountBank``, ``MonetaryAccountSavings``, ...). They all share the
fields exposed here, so every variant decodes into one :class:`MonetaryAccount`
with ``kind`` recording which variant it came from.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from bunqsys.client import BunqClient

logger = logging.getLogger(__name__)


class AccountKind(str, Enum):
    BANK = "MonetaryAccountBank"
    SAVINGS = "MonetaryAccountSavings"
    EXTERNAL_SAVINGS = "MonetaryAccountExternalSavings"
    JOINT = "MonetaryAccountJoint"


class AccountStatus(str, Enum):
    ACTIVE = "ACTIVE"
    BLOCKED = "BLOCKED"
    CANCELLED = "CANCELLED"
    PENDING_REOPEN = "PENDING_REOPEN"


@dataclass(frozen=True)
class Amount:
    currency: str
    value: str

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Amount:
        return cls(currency=str(data["currency"]), value=str(data["value"]))

    def __str__(self) -> str:
        return f"{self.value} {self.currency}"


@dataclass(frozen=True)
class MonetaryAccount:
    kind: AccountKind
    id: int
    currency: str
    balance: Amount
    status: AccountStatus
    sub_status: str
    description: str
    display_name: str
    # Savings variants only.
    number_of_payment_remaining: int | None = None

    @property
    def name(self) -> str:
        return f"{self.display_name} : {self.description}"

    @classmethod
    def parse(cls, kind: AccountKind, data: Mapping[str, Any]) -> MonetaryAccount:
        remaining = data.get("number_of_payment_remaining")
        return cls(
            kind=kind,
            id=int(data["id"]),
            currency=str(data["currency"]),
            balance=Amount.from_mapping(data["balance"]),
            status=AccountStatus(data["status"]),
            sub_status=str(data.get("sub_status", "")),
            description=str(data.get("description", "")),
            display_name=str(data.get("display_name", "")),
            number_of_payment_remaining=int(remaining) if remaining is not None else None,
        )


def _parser(kind: AccountKind):
    def parse(data: Mapping[str, Any]) -> MonetaryAccount:
        return MonetaryAccount.parse(kind, data)

    return parse


ACCOUNT_VARIANTS = {kind.value: _parser(kind) for kind in AccountKind}


def list_monetary_accounts(client: BunqClient) -> list[MonetaryAccount]:
    """All monetary accounts of the session user.

    Variants other than the known account kinds are skipped.
    """
    envelope = client.get_envelope(f"/user/{client.user_id}/monetary-account", ACCOUNT_VARIANTS)
    accounts = []
    for entry in envelope.entries:
        if isinstance(entry.value, MonetaryAccount):
            accounts.append(entry.value)
        else:
            logger.warning(f"Skipping unsupported account variant {entry.variant}")
    return accounts
