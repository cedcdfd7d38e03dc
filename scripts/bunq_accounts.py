#!/usr/bin/env python
from __future__ import annotations

import argparse
import logging

import pandas as pd

from bunqsys.client import BunqClient
from bunqsys.domains.monetary_account import AccountStatus, list_monetary_accounts


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    parser = argparse.ArgumentParser(description="List monetary accounts (/user/{id}/monetary-account)")
    parser.add_argument("--active-only", action="store_true", help="Hide blocked and cancelled accounts")
    args = parser.parse_args()

    client = BunqClient.from_env()
    accounts = list_monetary_accounts(client)
    if args.active_only:
        accounts = [a for a in accounts if a.status is AccountStatus.ACTIVE]

    df = pd.DataFrame(
        [
            {
                "id": a.id,
                "kind": a.kind.value,
                "name": a.name,
                "balance": a.balance.value,
                "currency": a.balance.currency,
                "status": a.status.value,
            }
            for a in accounts
        ]
    )
    print(df.to_string(index=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
