#!/usr/bin/env python
from __future__ import annotations

import argparse
import logging

import pandas as pd

from bunqsys.client import BunqClient
from bunqsys.domains.payment import list_payments


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    parser = argparse.ArgumentParser(description="List payments of a monetary account")
    parser.add_argument("account_id", type=int, help="Monetary account id (see bunq_accounts.py)")
    parser.add_argument("--count", type=int, default=200, help="Payments to fetch (max 200)")
    parser.add_argument("--limit", type=int, default=20, help="Rows to display")
    args = parser.parse_args()

    client = BunqClient.from_env()
    payments = list_payments(client, args.account_id, count=args.count)
    df = pd.DataFrame([p.as_row() for p in payments])
    if args.limit:
        print(df.head(args.limit).to_string(index=False))
    else:
        print(df.to_string(index=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
