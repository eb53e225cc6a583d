import dataclasses
import enum
import pathlib
import typing

import pydantic
from pydantic import BaseModel

from . import constants


class LedgerBaseModel(BaseModel):
    pass


class Posting(LedgerBaseModel):
    account: str
    # the number as written in the ledger, e.g. "-12.50"; empty for an auto-balanced posting
    amount: str = ""
    currency: str = ""
    # read from the ledger only, never written back
    cost: str | None = None
    price: str | None = None


class Transaction(LedgerBaseModel):
    # `<file-path>:<byte-offset>` of the date token, only set for entries loaded from the ledger
    id: str | None = None
    # ISO 8601 date, decides which period file the entry goes into
    date: str
    flag: str = constants.CLEARED_FLAG
    payee: str | None = None
    narration: str | None = None
    tags: list[str] = pydantic.Field(default_factory=list)
    postings: list[Posting] = pydantic.Field(default_factory=list)


class Account(LedgerBaseModel):
    name: str
    open_date: str
    # empty means any currency is accepted
    currencies: list[str] = pydantic.Field(default_factory=list)
    close_date: str | None = None


class VerifyResult(LedgerBaseModel):
    errors: list[str] = pydantic.Field(default_factory=list)
    warnings: list[str] = pydantic.Field(default_factory=list)


class LedgerConfig(LedgerBaseModel):
    """
    Ledger directory layout, loaded from `.beancounters.yaml`:

    ```YAML
    root_file: main.bean
    accounts_file: accounts.bean
    extension: .bean
    period_file: "{{ date.year }}.bean"
    ```
    """

    root_file: str = constants.ROOT_FILE
    """The index file which includes every period file"""
    accounts_file: str = constants.ACCOUNTS_FILE
    """The file holding open and close directives"""
    extension: str = constants.LEDGER_EXTENSION
    """Extension of ledger files scanned for transactions"""
    period_file: str = constants.DEFAULT_PERIOD_FILE_TEMPLATE
    """Jinja2 template rendering the period file name from `date`"""


@dataclasses.dataclass(frozen=True)
class Span:
    # half-open byte range [start, end)
    start: int
    end: int


@dataclasses.dataclass(frozen=True)
class PostingNode:
    account: str
    amount: str
    currency: str
    cost: str | None
    price: str | None
    account_span: Span
    amount_span: Span | None
    # from the account token to the last token of the posting line
    span: Span


@dataclasses.dataclass(frozen=True)
class TxnDirective:
    date: str
    flag: str
    payee: str | None
    narration: str | None
    tags: list[str]
    postings: list[PostingNode]
    date_span: Span
    flag_span: Span
    narration_span: Span | None
    # from the date token to the last token of the directive, metadata included
    span: Span


@dataclasses.dataclass(frozen=True)
class OpenDirective:
    date: str
    account: str
    currencies: list[str]
    date_span: Span
    span: Span


@dataclasses.dataclass(frozen=True)
class CloseDirective:
    date: str
    account: str
    date_span: Span
    span: Span


@dataclasses.dataclass(frozen=True)
class IncludeDirective:
    path: str
    span: Span


Directive = TxnDirective | OpenDirective | CloseDirective | IncludeDirective


@enum.unique
class Severity(enum.Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclasses.dataclass(frozen=True)
class Diagnostic:
    severity: Severity
    path: str
    # 1-based, 0 when the position is unknown
    line: int
    column: int
    message: str
    # source excerpt pointing at the problem, may span several lines
    context: str | None = None


@dataclasses.dataclass(frozen=True)
class ParseResult:
    path: pathlib.Path
    directives: list[Directive]
    errors: list[Diagnostic]
    warnings: list[Diagnostic]

    @property
    def ok(self) -> bool:
        return not self.errors

    def transactions(self) -> typing.Generator[TxnDirective, None, None]:
        for directive in self.directives:
            if isinstance(directive, TxnDirective):
                yield directive

    def includes(self) -> typing.Generator[IncludeDirective, None, None]:
        for directive in self.directives:
            if isinstance(directive, IncludeDirective):
                yield directive
