import logging
import pathlib
import typing

from .data_types import Account
from .data_types import CloseDirective
from .data_types import LedgerConfig
from .data_types import OpenDirective
from .data_types import Posting
from .data_types import Transaction
from .data_types import TxnDirective
from .errors import LedgerIOError
from .grammar import parse_file
from .grammar import raise_for_errors
from .identifiers import encode_id

logger = logging.getLogger(__name__)


def iter_ledger_files(
    data_dir: pathlib.Path, config: LedgerConfig
) -> typing.Generator[pathlib.Path, None, None]:
    """Yield ledger files directly under `data_dir` in name order, the root file excluded"""
    try:
        paths = sorted(data_dir.iterdir())
    except OSError as exc:
        raise LedgerIOError(f"Failed to list {data_dir}: {exc}") from exc
    for path in paths:
        if path.suffix != config.extension or path.name == config.root_file:
            continue
        if not path.is_file():
            continue
        yield path


def to_transaction(path: pathlib.Path, txn: TxnDirective) -> Transaction:
    return Transaction(
        id=encode_id(str(path), txn.date_span.start),
        date=txn.date,
        flag=txn.flag,
        payee=txn.payee,
        narration=txn.narration,
        tags=txn.tags,
        postings=[
            Posting(
                account=posting.account,
                amount=posting.amount,
                currency=posting.currency,
                cost=posting.cost,
                price=posting.price,
            )
            for posting in txn.postings
        ],
    )


def list_transactions(
    data_dir: pathlib.Path, config: LedgerConfig | None = None
) -> list[Transaction]:
    """All transactions of the ledger directory, latest date first.

    Same-date transactions keep file name order, then their order within the file.
    """
    config = config or LedgerConfig()
    transactions: list[Transaction] = []
    for path in iter_ledger_files(data_dir, config):
        result = raise_for_errors(parse_file(path))
        for warning in result.warnings:
            logger.warning("%s:%s: %s", warning.path, warning.line, warning.message)
        file_txns = [to_transaction(path, txn) for txn in result.transactions()]
        logger.debug("Found %s transactions in %s", len(file_txns), path)
        transactions.extend(file_txns)
    # list.sort is stable, also with reverse=True
    transactions.sort(key=lambda txn: txn.date, reverse=True)
    return transactions


def list_accounts(
    data_dir: pathlib.Path, config: LedgerConfig | None = None
) -> list[Account]:
    config = config or LedgerConfig()
    path = data_dir / config.accounts_file
    if not path.exists():
        logger.debug("Accounts file %s does not exist", path)
        return []
    result = raise_for_errors(parse_file(path))
    accounts: dict[str, Account] = {}
    close_dates: dict[str, str] = {}
    for directive in result.directives:
        if isinstance(directive, OpenDirective):
            accounts[directive.account] = Account(
                name=directive.account,
                open_date=directive.date,
                currencies=directive.currencies,
            )
        elif isinstance(directive, CloseDirective):
            close_dates[directive.account] = directive.date
    for name, close_date in close_dates.items():
        account = accounts.get(name)
        if account is None:
            logger.warning("Account %s is closed but never opened", name)
            continue
        account.close_date = close_date
    return list(accounts.values())
