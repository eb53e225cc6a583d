import datetime
import pathlib
import typing

import pytest

from beancounters.data_types import Account
from beancounters.data_types import LedgerConfig
from beancounters.data_types import Posting
from beancounters.data_types import Transaction
from beancounters.errors import ErrorKind
from beancounters.errors import InvalidDateError
from beancounters.errors import LedgerParseError
from beancounters.errors import NotFoundError
from beancounters.identifiers import encode_id
from beancounters.synthesizer import account_to_text
from beancounters.synthesizer import add_account
from beancounters.synthesizer import add_transaction
from beancounters.synthesizer import close_account
from beancounters.synthesizer import delete_account
from beancounters.synthesizer import delete_transaction
from beancounters.synthesizer import ensure_include
from beancounters.synthesizer import period_file_name
from beancounters.synthesizer import render_transaction
from beancounters.synthesizer import set_transaction_flag
from beancounters.synthesizer import txn_to_text


@pytest.mark.parametrize(
    "txn, expected",
    [
        (
            Transaction(
                date="2024-01-05",
                payee="Cafe",
                narration="Coffee",
                tags=["food", "trip-2024"],
                postings=[
                    Posting(account="Expenses:Food", amount="4.50", currency="USD"),
                    Posting(account="Assets:Bank", amount="-4.50", currency="USD"),
                ],
            ),
            '\n2024-01-05 * "Cafe" "Coffee" #food #trip-2024\n'
            "  Expenses:Food 4.50 USD\n"
            "  Assets:Bank -4.50 USD\n",
        ),
        (
            Transaction(
                date="2024-02-01",
                flag="!",
                narration='Say "hi"',
                postings=[
                    Posting(account="Expenses:Rent", amount="1000", currency="USD"),
                    Posting(account="Assets:Bank"),
                ],
            ),
            '\n2024-02-01 ! "Say \\"hi\\""\n'
            "  Expenses:Rent 1000 USD\n"
            "  Assets:Bank\n",
        ),
        (
            Transaction(date="2024-03-01"),
            '\n2024-03-01 * ""\n',
        ),
        (
            Transaction(
                date="2024-03-02",
                narration="Café",
                postings=[
                    Posting(
                        account="Assets:Stock",
                        amount="10",
                        currency="AAPL",
                        cost="{100.00 USD}",
                        price="@ 110.00 USD",
                    ),
                ],
            ),
            '\n2024-03-02 * "Café"\n  Assets:Stock 10 AAPL\n',
        ),
    ],
)
def test_txn_to_text(txn: Transaction, expected: str):
    assert txn_to_text(txn) == expected


@pytest.mark.parametrize(
    "txn, exception",
    [
        (Transaction(date="2024-13-01"), InvalidDateError),
        (Transaction(date="yesterday"), InvalidDateError),
        (Transaction(date="2024-01-01", flag=""), ValueError),
        (Transaction(date="2024-01-01", tags=["two words"]), ValueError),
        (
            Transaction(date="2024-01-01", postings=[Posting(account="Assets Bank")]),
            ValueError,
        ),
    ],
)
def test_txn_to_text_invalid(txn: Transaction, exception: typing.Type[Exception]):
    with pytest.raises(exception):
        txn_to_text(txn)


def test_render_transaction_rejects_unparsable_entry():
    txn = Transaction(
        date="2024-01-01", postings=[Posting(account="not-an-account", amount="1")]
    )
    with pytest.raises(LedgerParseError) as exc_info:
        render_transaction(txn, LedgerConfig())
    assert exc_info.value.kind == ErrorKind.PARSE


@pytest.mark.parametrize(
    "template, date, expected",
    [
        (None, datetime.date(2024, 1, 5), "2024-01.bean"),
        (None, datetime.date(987, 12, 31), "0987-12.bean"),
        ("{{ date.year }}.bean", datetime.date(2024, 1, 5), "2024.bean"),
        (
            "{{ date.year }}-{{ date | month_name | lower }}.bean",
            datetime.date(2024, 3, 5),
            "2024-march.bean",
        ),
    ],
)
def test_period_file_name(
    template: str | None, date: datetime.date, expected: str
):
    config = LedgerConfig() if template is None else LedgerConfig(period_file=template)
    assert period_file_name(date, config) == expected


@pytest.mark.parametrize(
    "template",
    [
        "{{ date.year }}.txt",
        "{{ date.year }}/{{ date.month }}.bean",
        "main.bean",
        "accounts.bean",
        ".bean",
    ],
)
def test_period_file_name_invalid(template: str):
    with pytest.raises(ValueError):
        period_file_name(datetime.date(2024, 1, 5), LedgerConfig(period_file=template))


def test_ensure_include(tmp_path: pathlib.Path):
    root = tmp_path / "main.bean"
    assert ensure_include(root, "2024-01.bean")
    assert not ensure_include(root, "2024-01.bean")
    assert ensure_include(root, "2024-02.bean")
    assert root.read_text() == 'include "2024-01.bean"\ninclude "2024-02.bean"\n'


def test_ensure_include_without_trailing_newline(tmp_path: pathlib.Path):
    root = tmp_path / "main.bean"
    root.write_bytes(b'option "title" "Books"')
    ensure_include(root, "2024-01.bean")
    assert root.read_text() == 'option "title" "Books"\ninclude "2024-01.bean"\n'


def test_add_transaction(tmp_path: pathlib.Path, make_txn: typing.Callable):
    path = add_transaction(tmp_path, make_txn(date="2024-01-05", narration="A"))
    assert path == tmp_path / "2024-01.bean"
    add_transaction(tmp_path, make_txn(date="2024-01-20", narration="B"))
    add_transaction(tmp_path, make_txn(date="2024-02-01", narration="C"))

    assert (tmp_path / "2024-01.bean").read_text() == (
        '\n2024-01-05 * "A"\n'
        "  Expenses:Food 4.50 USD\n"
        "  Assets:Bank -4.50 USD\n"
        '\n2024-01-20 * "B"\n'
        "  Expenses:Food 4.50 USD\n"
        "  Assets:Bank -4.50 USD\n"
    )
    assert (tmp_path / "main.bean").read_text() == (
        'include "2024-01.bean"\ninclude "2024-02.bean"\n'
    )


def test_add_transaction_invalid_date(
    tmp_path: pathlib.Path, make_txn: typing.Callable
):
    with pytest.raises(InvalidDateError):
        add_transaction(tmp_path, make_txn(date="2024-02-30"))
    assert list(tmp_path.iterdir()) == []


def test_delete_transaction(tmp_path: pathlib.Path, make_txn: typing.Callable):
    path = add_transaction(tmp_path, make_txn(narration="A"))
    add_transaction(tmp_path, make_txn(narration="B"))
    content = path.read_bytes()
    offset = content.index(b"2024-01-05")

    delete_transaction(encode_id(str(path), offset))

    assert path.read_text() == (
        '\n\n2024-01-05 * "B"\n'
        "  Expenses:Food 4.50 USD\n"
        "  Assets:Bank -4.50 USD\n"
    )


def test_delete_transaction_not_found(
    tmp_path: pathlib.Path, make_txn: typing.Callable
):
    path = add_transaction(tmp_path, make_txn())
    content = path.read_bytes()
    with pytest.raises(NotFoundError):
        delete_transaction(encode_id(str(path), 0))
    assert path.read_bytes() == content


@pytest.mark.parametrize("flag", ["!", "*"])
def test_set_transaction_flag(
    tmp_path: pathlib.Path, make_txn: typing.Callable, flag: str
):
    path = add_transaction(tmp_path, make_txn())
    offset = path.read_bytes().index(b"2024-01-05")
    txn_id = encode_id(str(path), offset)

    set_transaction_flag(txn_id, flag)

    assert path.read_bytes()[offset:].startswith(f'2024-01-05 {flag} "'.encode())


@pytest.mark.parametrize(
    "account, expected",
    [
        (
            Account(name="Assets:Bank", open_date="2024-01-01"),
            "2024-01-01 open Assets:Bank\n",
        ),
        (
            Account(
                name="Assets:Bank",
                open_date="2024-01-01",
                currencies=["USD", "EUR"],
                close_date="2024-12-31",
            ),
            "2024-01-01 open Assets:Bank USD,EUR\n2024-12-31 close Assets:Bank\n",
        ),
    ],
)
def test_account_to_text(account: Account, expected: str):
    assert account_to_text(account) == expected


def test_add_account(tmp_path: pathlib.Path):
    add_account(tmp_path, Account(name="Assets:Bank", open_date="2024-01-01"))
    add_account(
        tmp_path,
        Account(name="Expenses:Food", open_date="2024-01-02", currencies=["USD"]),
    )
    assert (tmp_path / "accounts.bean").read_text() == (
        "2024-01-01 open Assets:Bank\n2024-01-02 open Expenses:Food USD\n"
    )
    assert (tmp_path / "main.bean").read_text() == 'include "accounts.bean"\n'

    with pytest.raises(ValueError):
        add_account(tmp_path, Account(name="Assets:Bank", open_date="2024-02-01"))


def test_close_account(tmp_path: pathlib.Path):
    add_account(tmp_path, Account(name="Assets:Bank", open_date="2024-01-01"))
    close_account(tmp_path, "Assets:Bank", "2024-12-31")
    assert (tmp_path / "accounts.bean").read_text() == (
        "2024-01-01 open Assets:Bank\n2024-12-31 close Assets:Bank\n"
    )
    with pytest.raises(ValueError):
        close_account(tmp_path, "Assets:Bank", "2025-01-01")
    with pytest.raises(NotFoundError):
        close_account(tmp_path, "Assets:Cash", "2025-01-01")


def test_delete_account_matches_exact_name(
    tmp_path: pathlib.Path, construct_files: typing.Callable
):
    construct_files(
        tmp_path,
        {
            "accounts.bean": """\
            2024-01-01 open Assets:BankX USD
            2024-01-01 open Assets:Bank USD
            2024-01-02 open Expenses:Food
            2024-06-30 close Assets:Bank
            """,
        },
    )
    delete_account(tmp_path, "Assets:Bank")
    assert (tmp_path / "accounts.bean").read_text() == (
        "2024-01-01 open Assets:BankX USD\n2024-01-02 open Expenses:Food\n"
    )
    with pytest.raises(NotFoundError):
        delete_account(tmp_path, "Assets:Bank")


def test_delete_account_with_metadata(
    tmp_path: pathlib.Path, construct_files: typing.Callable
):
    construct_files(
        tmp_path,
        {
            "accounts.bean": """\
            2024-01-01 open Assets:Cash USD
            2024-01-01 open Assets:Bank USD
              institution: "Big Bank"
              number: "1234"
            2024-01-02 open Expenses:Food
              category: "daily"
            """,
        },
    )
    delete_account(tmp_path, "Assets:Bank")
    assert (tmp_path / "accounts.bean").read_text() == (
        "2024-01-01 open Assets:Cash USD\n"
        "2024-01-02 open Expenses:Food\n"
        '  category: "daily"\n'
    )


def test_delete_account_missing_file(tmp_path: pathlib.Path):
    with pytest.raises(NotFoundError):
        delete_account(tmp_path, "Assets:Bank")
