import dataclasses
import datetime
import json
import logging
import pathlib

from beancount_black.formatter import parse_date
from jinja2.sandbox import SandboxedEnvironment

from .data_types import Account
from .data_types import CloseDirective
from .data_types import LedgerConfig
from .data_types import OpenDirective
from .data_types import ParseResult
from .data_types import Posting
from .data_types import Transaction
from .errors import InvalidDateError
from .errors import NotFoundError
from .grammar import parse_bytes
from .grammar import raise_for_errors
from .identifiers import decode_id
from .spans import find_transaction
from .spans import resolve_transaction_span
from .splice import append_bytes
from .splice import atomic_write
from .splice import read_bytes
from .splice import replace_span
from .splice import splice_out
from .templates import make_environment

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class RenderedEntry:
    # period file name relative to the ledger directory
    file_name: str
    text: str


def to_date(value: str) -> datetime.date:
    try:
        return parse_date(value)
    except (ValueError, TypeError) as exc:
        raise InvalidDateError(f"Invalid date {value!r}: {exc}") from exc


def check_word(kind: str, value: str):
    if not value or any(char.isspace() for char in value):
        raise ValueError(f"Invalid {kind} {value!r}")


def quote(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def period_file_name(
    date: datetime.date,
    config: LedgerConfig,
    template_env: SandboxedEnvironment | None = None,
) -> str:
    if template_env is None:
        template_env = make_environment()
    file_name = template_env.from_string(config.period_file).render(date=date).strip()
    if (
        not file_name.endswith(config.extension)
        or file_name == config.extension
        or "/" in file_name
        or "\\" in file_name
        or file_name in (config.root_file, config.accounts_file)
    ):
        raise ValueError(
            f"Period file template rendered an invalid file name {file_name!r}"
        )
    return file_name


def posting_to_text(posting: Posting) -> str:
    check_word("account", posting.account)
    columns = [posting.account]
    if posting.amount:
        columns.append(posting.amount)
        if posting.currency:
            columns.append(posting.currency)
    return (" " * 2) + " ".join(columns)


def txn_to_text(txn: Transaction) -> str:
    """Render a transaction as a ledger entry preceded by a blank separator line.

    Cost and price of postings are not written.
    """
    check_word("flag", txn.flag)
    columns = [
        to_date(txn.date).isoformat(),
        txn.flag,
        *((quote(txn.payee),) if txn.payee is not None else ()),
        quote(txn.narration or ""),
    ]
    for tag in txn.tags:
        check_word("tag", tag)
        columns.append("#" + tag)
    lines = [" ".join(columns), *map(posting_to_text, txn.postings)]
    return "\n" + "\n".join(lines) + "\n"


def render_transaction(
    txn: Transaction,
    config: LedgerConfig,
    template_env: SandboxedEnvironment | None = None,
) -> RenderedEntry:
    """Render the entry and its target file name, and make sure the text parses back"""
    file_name = period_file_name(to_date(txn.date), config, template_env)
    text = txn_to_text(txn)
    raise_for_errors(parse_bytes(text.encode("utf8"), file_name))
    return RenderedEntry(file_name=file_name, text=text)


def ensure_include(root_path: pathlib.Path, file_name: str) -> bool:
    """Add `include "<file_name>"` to the root file unless the exact line is there already"""
    include_line = f"include {quote(file_name)}"
    content = read_bytes(root_path).decode("utf8") if root_path.exists() else ""
    if include_line in (line.strip() for line in content.splitlines()):
        return False
    prefix = "\n" if content and not content.endswith("\n") else ""
    append_bytes(root_path, f"{prefix}{include_line}\n".encode("utf8"))
    logger.info("Added %s to %s", include_line, root_path)
    return True


def append_entry(data_dir: pathlib.Path, entry: RenderedEntry, config: LedgerConfig):
    path = data_dir / entry.file_name
    append_bytes(path, entry.text.encode("utf8"))
    ensure_include(data_dir / config.root_file, entry.file_name)
    return path


def add_transaction(
    data_dir: pathlib.Path,
    txn: Transaction,
    config: LedgerConfig | None = None,
    template_env: SandboxedEnvironment | None = None,
) -> pathlib.Path:
    config = config or LedgerConfig()
    entry = render_transaction(txn, config, template_env)
    path = append_entry(data_dir, entry, config)
    logger.info("Added transaction dated %s to %s", txn.date, path)
    return path


def delete_transaction(txn_id: str):
    path, offset = decode_id(txn_id)
    content = read_bytes(path)
    result = raise_for_errors(parse_bytes(content, path))
    span = resolve_transaction_span(result, offset)
    atomic_write(path, splice_out(content, span))
    logger.info("Deleted transaction %s (%s bytes)", txn_id, span.end - span.start)


def set_transaction_flag(txn_id: str, flag: str):
    check_word("flag", flag)
    path, offset = decode_id(txn_id)
    content = read_bytes(path)
    result = raise_for_errors(parse_bytes(content, path))
    txn = find_transaction(result, offset)
    if txn.flag == flag:
        return
    atomic_write(path, replace_span(content, txn.flag_span, flag.encode("utf8")))
    logger.info("Changed flag of transaction %s from %s to %s", txn_id, txn.flag, flag)


def account_to_text(account: Account) -> str:
    check_word("account", account.name)
    columns = [to_date(account.open_date).isoformat(), "open", account.name]
    if account.currencies:
        for currency in account.currencies:
            check_word("currency", currency)
        columns.append(",".join(account.currencies))
    lines = [" ".join(columns)]
    if account.close_date is not None:
        lines.append(close_to_text(account.name, account.close_date))
    return "".join(line + "\n" for line in lines)


def close_to_text(name: str, date: str) -> str:
    return f"{to_date(date).isoformat()} close {name}"


def parse_accounts_file(path: pathlib.Path) -> tuple[bytes, ParseResult]:
    content = read_bytes(path) if path.exists() else b""
    return content, raise_for_errors(parse_bytes(content, path))


def append_to_accounts_file(
    data_dir: pathlib.Path, content: bytes, text: str, config: LedgerConfig
):
    path = data_dir / config.accounts_file
    prefix = b"\n" if content and not content.endswith(b"\n") else b""
    append_bytes(path, prefix + text.encode("utf8"))
    ensure_include(data_dir / config.root_file, config.accounts_file)


def add_account(
    data_dir: pathlib.Path, account: Account, config: LedgerConfig | None = None
):
    config = config or LedgerConfig()
    text = account_to_text(account)
    content, result = parse_accounts_file(data_dir / config.accounts_file)
    for directive in result.directives:
        if isinstance(directive, OpenDirective) and directive.account == account.name:
            raise ValueError(f"Account {account.name} is already opened")
    append_to_accounts_file(data_dir, content, text, config)
    logger.info("Opened account %s on %s", account.name, account.open_date)


def close_account(
    data_dir: pathlib.Path, name: str, date: str, config: LedgerConfig | None = None
):
    config = config or LedgerConfig()
    text = close_to_text(name, date) + "\n"
    content, result = parse_accounts_file(data_dir / config.accounts_file)
    opened = False
    for directive in result.directives:
        if getattr(directive, "account", None) != name:
            continue
        if isinstance(directive, CloseDirective):
            raise ValueError(f"Account {name} is already closed on {directive.date}")
        opened = True
    if not opened:
        raise NotFoundError(f"Account {name} not found")
    append_to_accounts_file(data_dir, content, text, config)
    logger.info("Closed account %s on %s", name, date)


def delete_account(
    data_dir: pathlib.Path, name: str, config: LedgerConfig | None = None
):
    """Remove the open and close directives whose account is exactly `name`"""
    config = config or LedgerConfig()
    path = data_dir / config.accounts_file
    content, result = parse_accounts_file(path)
    spans = [
        directive.span
        for directive in result.directives
        if isinstance(directive, (OpenDirective, CloseDirective))
        and directive.account == name
    ]
    if not spans:
        raise NotFoundError(f"Account {name} not found")
    # splice from the end of the file so earlier offsets stay valid
    for span in sorted(spans, key=lambda span: span.start, reverse=True):
        content = splice_out(content, span)
    atomic_write(path, content)
    logger.info("Deleted account %s", name)
