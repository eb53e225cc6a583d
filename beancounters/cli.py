import functools
import json
import os
import pathlib
import typing

import click
import rich
from rich import box
from rich.markup import escape
from rich.padding import Padding
from rich.table import Table

from .aliase import AliasedGroup
from .constants import CLEARED_FLAG
from .data_types import Account
from .data_types import Posting
from .data_types import Transaction
from .environment import LOG_LEVEL_MAP
from .environment import Environment
from .environment import LogLevel
from .environment import pass_env
from .environment import setup_logging
from .errors import ErrorKind
from .errors import LedgerError
from .ledger import Ledger

TABLE_HEADER_STYLE = "yellow"
TABLE_COLUMN_STYLE = "cyan"
EXIT_CODES = {
    ErrorKind.INVALID_IDENTIFIER: 2,
    ErrorKind.INVALID_DATE: 2,
    ErrorKind.NOT_FOUND: 3,
    ErrorKind.PARSE: 4,
    ErrorKind.IO: 5,
}


def handle_errors(func: typing.Callable) -> typing.Callable:
    """Print ledger and validation errors and exit with a code telling their kind"""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        ctx = click.get_current_context()
        try:
            return func(*args, **kwargs)
        except LedgerError as exc:
            click.echo(f"Error: {exc}", err=True)
            ctx.exit(EXIT_CODES[exc.kind])
        except ValueError as exc:
            click.echo(f"Error: {exc}", err=True)
            ctx.exit(2)

    return wrapper


def parse_postings(
    ctx: click.Context, param: click.Parameter, values: tuple[str, ...]
) -> list[Posting]:
    postings = []
    for value in values:
        parts = value.split()
        if not 1 <= len(parts) <= 3:
            raise click.BadParameter(
                f"Expected 'ACCOUNT [AMOUNT [CURRENCY]]' but got {value!r}"
            )
        account, amount, currency = (parts + ["", ""])[:3]
        postings.append(Posting(account=account, amount=amount, currency=currency))
    return postings


def txn_options(func: typing.Callable) -> typing.Callable:
    options = [
        click.option("--date", required=True, help="Transaction date as YYYY-MM-DD"),
        click.option("--flag", default=CLEARED_FLAG, show_default=True),
        click.option("--payee"),
        click.option("--narration"),
        click.option("-t", "--tag", "tags", multiple=True, help="Tag without #"),
        click.option(
            "-p",
            "--posting",
            "postings",
            multiple=True,
            callback=parse_postings,
            help="Posting as 'ACCOUNT [AMOUNT [CURRENCY]]', in order",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def account_options(func: typing.Callable) -> typing.Callable:
    options = [
        click.option("--open-date", required=True, help="Open date as YYYY-MM-DD"),
        click.option(
            "--currency", "currencies", multiple=True, help="Accepted currency"
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def get_ledger(env: Environment) -> Ledger:
    if env.ledger is not None:
        return env.ledger
    if env.data_dir is None:
        raise click.UsageError("Ledger directory is not set")
    if not env.data_dir.exists():
        env.data_dir.mkdir(parents=True)
        env.logger.info("Created ledger directory %s", env.data_dir)
    env.ledger = Ledger.open(env.data_dir, env.config_path)
    return env.ledger


def echo_json(payload: typing.Any):
    click.echo(json.dumps(payload, indent=2, ensure_ascii=False))


@click.group(cls=AliasedGroup, help="Manage a Beancount ledger directory")
@click.option(
    "-d",
    "--data-dir",
    type=click.Path(file_okay=False, dir_okay=True),
    default=lambda: os.environ.get("BEANCOUNTERS_DATA_DIR", "data"),
    help="The ledger directory to work on",
)
@click.option(
    "-c",
    "--config",
    type=click.Path(dir_okay=False),
    default=None,
    help="The path to the ledger config file, defaults to .beancounters.yaml in the ledger directory",
)
@click.option(
    "-l",
    "--log-level",
    type=click.Choice(
        list(map(lambda key: key.value, LOG_LEVEL_MAP.keys())), case_sensitive=False
    ),
    default=lambda: os.environ.get("LOG_LEVEL", "INFO"),
)
@pass_env
def cli(env: Environment, data_dir: str, config: str | None, log_level: str):
    env.log_level = LogLevel(log_level.lower())
    setup_logging(env.log_level)
    # opened lazily by get_ledger
    env.data_dir = pathlib.Path(data_dir)
    env.config_path = config


@cli.group(name="txn", cls=AliasedGroup, help="List and edit transactions")
def txn_group():
    pass


@txn_group.command(name="list")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@pass_env
@handle_errors
def list_txn_cmd(env: Environment, as_json: bool):
    transactions = get_ledger(env).list_transactions()
    if as_json:
        echo_json([txn.model_dump(mode="json") for txn in transactions])
        return
    table = Table(
        title="Transactions",
        box=box.SIMPLE,
        header_style=TABLE_HEADER_STYLE,
        expand=True,
    )
    table.add_column("Id", style=TABLE_COLUMN_STYLE)
    table.add_column("Date", style=TABLE_COLUMN_STYLE)
    table.add_column("Flag", style=TABLE_COLUMN_STYLE)
    table.add_column("Payee", style=TABLE_COLUMN_STYLE)
    table.add_column("Narration", style=TABLE_COLUMN_STYLE)
    table.add_column("Postings", style=TABLE_COLUMN_STYLE)
    for txn in transactions:
        table.add_row(
            escape(txn.id or ""),
            escape(txn.date),
            escape(txn.flag),
            escape(txn.payee or ""),
            escape(txn.narration or ""),
            escape(
                "\n".join(
                    " ".join(filter(None, [p.account, p.amount, p.currency]))
                    for p in txn.postings
                )
            ),
        )
    rich.print(Padding(table, (1, 0, 0, 4)))


@txn_group.command(name="add")
@txn_options
@pass_env
@handle_errors
def add_txn_cmd(
    env: Environment,
    date: str,
    flag: str,
    payee: str | None,
    narration: str | None,
    tags: tuple[str, ...],
    postings: list[Posting],
):
    txn = Transaction(
        date=date,
        flag=flag,
        payee=payee,
        narration=narration,
        tags=list(tags),
        postings=postings,
    )
    path = get_ledger(env).add_transaction(txn)
    env.logger.info("Added transaction to %s", path)


@txn_group.command(name="update")
@click.argument("txn_id")
@txn_options
@pass_env
@handle_errors
def update_txn_cmd(
    env: Environment,
    txn_id: str,
    date: str,
    flag: str,
    payee: str | None,
    narration: str | None,
    tags: tuple[str, ...],
    postings: list[Posting],
):
    txn = Transaction(
        date=date,
        flag=flag,
        payee=payee,
        narration=narration,
        tags=list(tags),
        postings=postings,
    )
    path = get_ledger(env).update_transaction(txn_id, txn)
    env.logger.info("Updated transaction %s into %s", txn_id, path)


@txn_group.command(name="delete")
@click.argument("txn_id")
@pass_env
@handle_errors
def delete_txn_cmd(env: Environment, txn_id: str):
    get_ledger(env).delete_transaction(txn_id)


@txn_group.command(name="clear")
@click.argument("txn_id")
@pass_env
@handle_errors
def clear_txn_cmd(env: Environment, txn_id: str):
    get_ledger(env).clear_transaction(txn_id)


@txn_group.command(name="unclear")
@click.argument("txn_id")
@pass_env
@handle_errors
def unclear_txn_cmd(env: Environment, txn_id: str):
    get_ledger(env).unclear_transaction(txn_id)


@cli.group(name="account", cls=AliasedGroup, help="List and edit accounts")
def account_group():
    pass


@account_group.command(name="list")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@pass_env
@handle_errors
def list_account_cmd(env: Environment, as_json: bool):
    accounts = get_ledger(env).list_accounts()
    if as_json:
        echo_json([account.model_dump(mode="json") for account in accounts])
        return
    table = Table(
        title="Accounts",
        box=box.SIMPLE,
        header_style=TABLE_HEADER_STYLE,
        expand=True,
    )
    table.add_column("Name", style=TABLE_COLUMN_STYLE)
    table.add_column("Opened", style=TABLE_COLUMN_STYLE)
    table.add_column("Closed", style=TABLE_COLUMN_STYLE)
    table.add_column("Currencies", style=TABLE_COLUMN_STYLE)
    for account in accounts:
        table.add_row(
            escape(account.name),
            escape(account.open_date),
            escape(account.close_date or ""),
            escape(",".join(account.currencies)),
        )
    rich.print(Padding(table, (1, 0, 0, 4)))


@account_group.command(name="add")
@click.argument("name")
@account_options
@pass_env
@handle_errors
def add_account_cmd(
    env: Environment, name: str, open_date: str, currencies: tuple[str, ...]
):
    get_ledger(env).add_account(
        Account(name=name, open_date=open_date, currencies=list(currencies))
    )


@account_group.command(name="update")
@click.argument("name")
@click.option("--name", "new_name", help="New account name, defaults to NAME")
@account_options
@click.option("--close-date", help="Close date as YYYY-MM-DD")
@pass_env
@handle_errors
def update_account_cmd(
    env: Environment,
    name: str,
    new_name: str | None,
    open_date: str,
    currencies: tuple[str, ...],
    close_date: str | None,
):
    get_ledger(env).update_account(
        name,
        Account(
            name=new_name or name,
            open_date=open_date,
            currencies=list(currencies),
            close_date=close_date,
        ),
    )


@account_group.command(name="delete")
@click.argument("name")
@pass_env
@handle_errors
def delete_account_cmd(env: Environment, name: str):
    get_ledger(env).delete_account(name)


@account_group.command(name="close")
@click.argument("name")
@click.option("--date", required=True, help="Close date as YYYY-MM-DD")
@pass_env
@handle_errors
def close_account_cmd(env: Environment, name: str, date: str):
    get_ledger(env).close_account(name, date)


@cli.command(name="verify", help="Check the ledger for errors and warnings")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@pass_env
@handle_errors
def verify_cmd(env: Environment, as_json: bool):
    result = get_ledger(env).verify()
    if as_json:
        echo_json(result.model_dump(mode="json"))
    else:
        for line in result.errors:
            rich.print(f"[red]{escape(line)}[/]")
        for line in result.warnings:
            rich.print(f"[yellow]{escape(line)}[/]")
        rich.print(
            f"{len(result.errors)} error lines, {len(result.warnings)} warning lines"
        )
    if result.errors:
        click.get_current_context().exit(1)


if __name__ == "__main__":
    cli()
