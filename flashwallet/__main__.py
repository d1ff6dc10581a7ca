"""
Flash wallet CLI - Run with: python -m flashwallet

Commands:
    features  - Show which payment features are enabled
    ping      - Check that the GraphQL endpoint answers
    balance   - Show the wallet balance (needs FLASH_AUTH_TOKEN or a token file)
    banks     - List banks supported for settlement and top-up

Configuration comes from FLASH_* environment variables or a .env file.
"""

import json
import logging
import sys

from flashwallet._logging import configure_logging


def _client():
    from flashwallet import ClientSettings, FlashClient

    client = FlashClient(ClientSettings())
    client.restore_session()
    return client


def _print_error(error) -> None:
    print(f"Error [{error.kind.value}]: {error.message}")
    if error.retry_after is not None:
        print(f"  Retry after: {error.retry_after}s")


def cmd_features():
    """Show the capability map."""
    from flashwallet import ClientSettings, FeatureGate

    gate = FeatureGate(ClientSettings().features)
    for name, enabled in gate.as_dict().items():
        print(f"  {name:<12} {'enabled' if enabled else 'disabled'}")
    return 0


def cmd_ping():
    """Run the connection test query."""
    from flashwallet import FlashApiError

    client = _client()
    print(f"Testing {client.settings.graphql_url} ...")
    try:
        result = client.test_connection()
    except FlashApiError as e:
        _print_error(e)
        return 1
    finally:
        client.close()

    print(f"OK: {json.dumps(result)}")
    return 0


def cmd_balance():
    """Show the current balance."""
    from flashwallet import FlashApiError

    client = _client()
    try:
        balance = client.get_balance()
    except FlashApiError as e:
        _print_error(e)
        return 1
    finally:
        client.close()

    print(json.dumps(balance, indent=2))
    return 0


def cmd_banks():
    """List supported banks."""
    from flashwallet import FlashApiError

    client = _client()
    try:
        banks = client.get_supported_banks()
    except FlashApiError as e:
        _print_error(e)
        return 1
    finally:
        client.close()

    for bank in banks:
        print(f"  {bank.get('code', '?'):<10} {bank.get('name', '')}")
    return 0


def cmd_help():
    """Show help."""
    print(__doc__)
    print("Usage: python -m flashwallet [-v] <command>\n")
    print("Commands:")
    print("  features  Show which payment features are enabled")
    print("  ping      Check that the GraphQL endpoint answers")
    print("  balance   Show the wallet balance")
    print("  banks     List supported banks")
    print("  help      Show this help message")
    return 0


def main(argv=None):
    """Main entry point."""
    args = list(sys.argv[1:] if argv is None else argv)

    if args and args[0] in ("-v", "--verbose"):
        configure_logging(logging.DEBUG)
        args = args[1:]

    if not args:
        cmd_help()
        return 0

    command = args[0].lower()

    commands = {
        "features": cmd_features,
        "ping": cmd_ping,
        "balance": cmd_balance,
        "banks": cmd_banks,
        "help": cmd_help,
        "--help": cmd_help,
        "-h": cmd_help,
    }

    if command in commands:
        return commands[command]()
    else:
        print(f"Unknown command: {command}")
        cmd_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
