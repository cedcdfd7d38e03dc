#!/usr/bin/env python
"""Create (or reuse) the persisted bunq credential bundle.

Walks through the OAuth grant in the browser, exchanges the code for an
access token and runs the installation / device / session handshake. The
result is written to BUNQ_CONTEXT_PATH (default ``.bunq-context.json``).
"""

from __future__ import annotations

import argparse
import json
import logging

from bunqsys.context import ApiContext, Environment, SetupContext
from bunqsys.core.api_config import ApiConfig
from bunqsys.data.auth import create_auth_url, exchange_code, load_access_token
from bunqsys.errors import AuthError
from bunqsys.handshake import bootstrap_api_context
from bunqsys.store import get_api_context

logger = logging.getLogger(__name__)


def _interactive_bootstrap(setup: SetupContext, config: ApiConfig) -> ApiContext:
    try:
        api_key = load_access_token()
        logger.info("Using access token from BUNQ_ACCESS_TOKEN")
    except AuthError:
        print("Visit the URL below and follow the process")
        print(create_auth_url(setup, config))
        code = input('Find the "code" in your redirect URL and paste it here: ').strip()
        if len(code) < 4:
            raise SystemExit("You probably didn't enter a correct code")
        api_key = exchange_code(code, setup, config)
        logger.info("bunq gave us an access token")
    return bootstrap_api_context(api_key, setup.environment, config)


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    parser = argparse.ArgumentParser(description="Set up the bunq credential bundle")
    parser.add_argument("--environment", default=None, help="SANDBOX or PRODUCTION (default: $BUNQ_ENVIRONMENT)")
    parser.add_argument("--storage-path", default=None, help="Credential file (default: $BUNQ_CONTEXT_PATH)")
    args = parser.parse_args()

    setup = SetupContext.from_env()
    if args.environment is not None or args.storage_path is not None:
        setup = SetupContext(
            environment=Environment.parse(args.environment) if args.environment is not None else setup.environment,
            client_id=setup.client_id,
            client_secret=setup.client_secret,
            storage_path=args.storage_path or setup.storage_path,
        )

    context = get_api_context(setup, bootstrap=_interactive_bootstrap)
    session = context.session_context
    print(
        json.dumps(
            {
                "ok": True,
                "environment": context.environment.value,
                "user_id": session.user_id,
                "valid_until": session.valid_until.isoformat(),
                "storage_path": setup.storage_path,
            }
        )
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
