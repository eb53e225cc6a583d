import pathlib
import textwrap
import typing

import pytest

from beancounters.data_types import Posting
from beancounters.data_types import Transaction
from beancounters.ledger import Ledger

TEST_PACKAGE_FOLDER = pathlib.Path(__file__).parent


@pytest.fixture
def construct_files() -> (
    typing.Callable[[pathlib.Path, typing.Dict[str, typing.Any]], None]
):
    def _construct_files(workdir: pathlib.Path, spec: typing.Dict[str, typing.Any]):
        for name, value in spec.items():
            if isinstance(value, str):
                (workdir / name).write_bytes(textwrap.dedent(value).encode("utf8"))
            elif isinstance(value, dict):
                sub_dir = workdir / name
                sub_dir.mkdir()
                _construct_files(sub_dir, value)
            else:
                raise ValueError()

    return _construct_files


@pytest.fixture
def ledger(tmp_path: pathlib.Path) -> Ledger:
    return Ledger(tmp_path)


@pytest.fixture
def make_txn() -> typing.Callable[..., Transaction]:
    def _make_txn(
        date: str = "2024-01-05",
        narration: str = "Coffee",
        amount: str = "4.50",
        **kwargs,
    ) -> Transaction:
        return Transaction(
            date=date,
            narration=narration,
            postings=[
                Posting(account="Expenses:Food", amount=amount, currency="USD"),
                Posting(account="Assets:Bank", amount=f"-{amount}", currency="USD"),
            ],
            **kwargs,
        )

    return _make_txn
