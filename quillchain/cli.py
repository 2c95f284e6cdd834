# quillchain/cli.py
import argparse

from . import __version__
from .core.ledger import ALL_CATEGORIES, TRANSACTION_CATEGORIES, LedgerStore
from .storage.database import LedgerDatabase
from .utils.console import print_error, print_info, print_warn


def _print_rows(rows):
    for row in rows:
        marker = "*" if row.fee_pending else " "
        badge = row.operation_badge or "-"
        print(f"{marker} {row.date or '':<27} {row.amount_display:>20}  {row.status:<10} "
              f"{badge:<7} {row.category:<10} {row.note or ''}")
        if row.explorer_url:
            print(f"    {row.explorer_url}")


def main(argv=None):
    """Command line interface for the local QuillChain ledger"""
    parser = argparse.ArgumentParser(prog="quill-ledger", description="QuillChain transaction ledger")
    parser.add_argument('--version', action='store_true', help='Show version')
    parser.add_argument('--db', help='Ledger database path (defaults to the per-user data dir)')
    parser.add_argument('--address', help='Wallet address (defaults to the connected wallet)')
    parser.add_argument('--search', default='', help='Free-text filter')
    parser.add_argument('--category', default=ALL_CATEGORIES, choices=TRANSACTION_CATEGORIES,
                        help='Category filter')
    parser.add_argument('--wallets', action='store_true', help='List wallets with a stored ledger')

    args = parser.parse_args(argv)

    if args.version:
        print(f"QuillChain v{__version__}")
        return 0

    database = LedgerDatabase(args.db)

    if args.wallets:
        for address in database.list_wallets():
            print(address)
        return 0

    address = args.address or database.get_connected_address()
    if not address:
        print_error("No wallet address given and no wallet connected")
        return 1

    rows = LedgerStore(database).view(address, search=args.search, category=args.category)
    if not rows:
        print_warn(f"No ledger records for {address}")
        return 0

    print_info(f"{len(rows)} record(s) for {address}")
    _print_rows(rows)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
