import dataclasses
import json
import logging
import pathlib
import threading
import typing

from beancount_parser.parser import make_parser
from lark import Lark
from lark import Token
from lark import Tree
from lark.exceptions import UnexpectedInput

from .data_types import CloseDirective
from .data_types import Diagnostic
from .data_types import Directive
from .data_types import IncludeDirective
from .data_types import OpenDirective
from .data_types import ParseResult
from .data_types import PostingNode
from .data_types import Severity
from .data_types import Span
from .data_types import TxnDirective
from .errors import LedgerParseError
from .splice import read_bytes
from .utils import make_byte_offset_mapper

logger = logging.getLogger(__name__)
_local = threading.local()


def get_parser() -> Lark:
    # Lark parsers keep per-parse state, one instance per worker thread
    parser = getattr(_local, "parser", None)
    if parser is None:
        parser = make_parser()
        _local.parser = parser
    return parser


def unquote(value: str) -> str:
    try:
        return json.loads(value)
    except ValueError:
        return value[1:-1]


def iter_tokens(tree: Tree) -> typing.Generator[Token, None, None]:
    yield from tree.scan_values(lambda v: isinstance(v, Token))


def find_token(tree: Tree, token_type: str) -> Token | None:
    for token in iter_tokens(tree):
        if token.type == token_type:
            return token
    return None


class _PendingTxn(typing.NamedTuple):
    tree: Tree
    postings: list[PostingNode]
    ends: list[int]


class DirectiveCollector:
    """Walk the statements of a parsed file and group them into directives.

    The beancount-parser tree is flat: every line is a `statement`, so postings
    and metadata items are attached to the last transaction seen.
    """

    def __init__(self, path: pathlib.Path, text: str):
        self.path = path
        self.text = text
        self.to_bytes = make_byte_offset_mapper(text)
        self.directives: list[Directive] = []
        self.warnings: list[Diagnostic] = []
        self._pending: _PendingTxn | None = None
        self._in_date_directive = False
        # index of the open or close directive owning the following metadata
        self._account_entry: int | None = None
        self._included: set[str] = set()

    def span(self, start: int, end: int) -> Span:
        return Span(start=self.to_bytes(start), end=self.to_bytes(end))

    def token_span(self, token: Token) -> Span:
        return self.span(token.start_pos, token.end_pos)

    def warn(self, token: Token, message: str):
        self.warnings.append(
            Diagnostic(
                severity=Severity.WARNING,
                path=str(self.path),
                line=token.line,
                column=token.column,
                message=message,
            )
        )

    def collect(self, tree: Tree) -> list[Directive]:
        if tree.data != "start":
            raise ValueError("Expected start")
        for child in tree.children:
            if child is None:
                continue
            if child.data != "statement":
                raise ValueError("Expected statement")
            first_child = child.children[0]
            if not isinstance(first_child, Tree):
                # comment only line
                continue
            if first_child.data == "date_directive":
                self._finish_txn()
                self._in_date_directive = True
                self._account_entry = None
                self._collect_date_directive(first_child.children[0], child)
            elif first_child.data == "posting":
                if self._pending is None:
                    self.warn(
                        next(iter_tokens(first_child)),
                        "Posting outside of a transaction",
                    )
                    continue
                posting = self._collect_posting(first_child, child)
                self._pending.postings.append(posting)
                self._pending.ends.append(posting.span.end)
            elif first_child.data == "metadata_item":
                if not self._in_date_directive:
                    self.warn(first_child.children[0], "Metadata outside of a directive")
                    continue
                end = self.to_bytes(max(t.end_pos for t in iter_tokens(child)))
                if self._pending is not None:
                    self._pending.ends.append(end)
                elif self._account_entry is not None:
                    self._extend_account_entry(end)
            else:
                self._finish_txn()
                self._in_date_directive = False
                self._account_entry = None
                for include in child.find_data("include"):
                    self._collect_include(include)
        self._finish_txn()
        return self.directives

    def _collect_date_directive(self, directive: Tree, statement: Tree):
        directive_type = directive.data
        if directive_type == "txn":
            self._pending = _PendingTxn(
                tree=directive,
                postings=[],
                ends=[self.to_bytes(max(t.end_pos for t in iter_tokens(statement)))],
            )
        elif directive_type == "open":
            date = find_token(directive, "DATE")
            self.directives.append(
                OpenDirective(
                    date=date.value,
                    account=find_token(directive, "ACCOUNT").value,
                    currencies=[
                        token.value
                        for token in iter_tokens(directive)
                        if token.type == "CURRENCY"
                    ],
                    date_span=self.token_span(date),
                    span=self.span(date.start_pos, self._statement_end(statement)),
                )
            )
        elif directive_type == "close":
            date = find_token(directive, "DATE")
            self.directives.append(
                CloseDirective(
                    date=date.value,
                    account=find_token(directive, "ACCOUNT").value,
                    date_span=self.token_span(date),
                    span=self.span(date.start_pos, self._statement_end(statement)),
                )
            )
        else:
            logger.debug("Skip %s directive in %s", directive_type, self.path)
            return
        if directive_type in ("open", "close"):
            self._account_entry = len(self.directives) - 1

    def _statement_end(self, statement: Tree) -> int:
        return max(token.end_pos for token in iter_tokens(statement))

    def _extend_account_entry(self, end: int):
        # metadata lines belong to the open or close directive above them
        directive = self.directives[self._account_entry]
        self.directives[self._account_entry] = dataclasses.replace(
            directive, span=Span(start=directive.span.start, end=end)
        )

    def _collect_include(self, include: Tree):
        token = find_token(include, "ESCAPED_STRING")
        if token is None:
            return
        include_path = unquote(token.value)
        if include_path in self._included:
            self.warn(token, f"Duplicate include of {include_path}")
        self._included.add(include_path)
        self.directives.append(
            IncludeDirective(path=include_path, span=self.token_span(token))
        )

    def _collect_posting(self, posting: Tree, statement: Tree) -> PostingNode:
        detail = posting.children[0]
        account = find_token(detail, "ACCOUNT")
        amount_tree = cost_tree = price_tree = None
        if detail.data == "detailed_posting":
            _, _, amount_tree, cost_tree, price_tree = detail.children

        comment = next(
            (
                child
                for child in statement.children[1:]
                if isinstance(child, Token) and child.type == "COMMENT"
            ),
            None,
        )
        line_end = self.text.find("\n", account.end_pos)
        if line_end == -1:
            line_end = len(self.text)
        tail_end = comment.start_pos if comment is not None else line_end

        amount = ""
        currency = ""
        amount_span = None
        amount_end = account.end_pos
        if amount_tree is not None:
            amount_tokens = list(iter_tokens(amount_tree))
            currency_token = next(
                (token for token in amount_tokens if token.type == "CURRENCY"), None
            )
            amount_end = max(token.end_pos for token in amount_tokens)
            number_end = (
                currency_token.start_pos if currency_token is not None else amount_end
            )
            raw_number = self.text[account.end_pos : number_end]
            amount = raw_number.strip()
            if currency_token is not None:
                currency = currency_token.value
            number_start = account.end_pos + len(raw_number) - len(raw_number.lstrip())
            amount_span = self.span(number_start, amount_end)

        # cost and price keep their source text, the braces and `@` are not tokens
        tail = self.text[amount_end:tail_end]
        cost = price = None
        if price_tree is not None:
            at = tail.find("@", tail.rfind("}") + 1)
            if at != -1:
                price = tail[at:].strip()
                tail = tail[:at]
        if cost_tree is not None:
            cost = tail.strip() or None

        tokens_end = max(token.end_pos for token in iter_tokens(detail))
        segment = self.text[account.start_pos : tail_end]
        posting_end = max(
            tokens_end, tail_end - (len(segment) - len(segment.rstrip()))
        )
        return PostingNode(
            account=account.value,
            amount=amount,
            currency=currency,
            cost=cost,
            price=price,
            account_span=self.token_span(account),
            amount_span=amount_span,
            span=self.span(account.start_pos, posting_end),
        )

    def _finish_txn(self):
        pending = self._pending
        if pending is None:
            return
        self._pending = None
        date: Token
        flag: Token
        payee: Token | None
        narration: Token | None
        annotations: Tree | None
        date, flag, payee, narration, annotations = pending.tree.children
        tags = []
        if annotations is not None:
            tags = [
                annotation.value[1:]
                for annotation in annotations.children
                if isinstance(annotation, Token) and annotation.type == "TAG"
            ]
        date_span = self.token_span(date)
        self.directives.append(
            TxnDirective(
                date=date.value,
                flag=flag.value,
                payee=unquote(payee.value) if payee is not None else None,
                narration=unquote(narration.value) if narration is not None else None,
                tags=tags,
                postings=pending.postings,
                date_span=date_span,
                flag_span=self.token_span(flag),
                narration_span=(
                    self.token_span(narration) if narration is not None else None
                ),
                span=Span(start=date_span.start, end=max(pending.ends)),
            )
        )


def syntax_error(path: pathlib.Path, text: str, exc: UnexpectedInput) -> Diagnostic:
    line = getattr(exc, "line", 0) or 0
    column = getattr(exc, "column", 0) or 0
    if line < 0:
        line, column = 0, 0
    message = str(exc).strip().splitlines()
    return Diagnostic(
        severity=Severity.ERROR,
        path=str(path),
        line=line,
        column=column,
        message=message[0] if message else type(exc).__name__,
        context=exc.get_context(text).rstrip("\n") if line > 0 else None,
    )


def parse_bytes(content: bytes, path: str | pathlib.Path) -> ParseResult:
    """Parse ledger file content into directives with byte spans, or diagnostics on failure"""
    path = pathlib.Path(path)
    try:
        text = content.decode("utf8")
    except UnicodeDecodeError as exc:
        return ParseResult(
            path=path,
            directives=[],
            errors=[
                Diagnostic(
                    severity=Severity.ERROR,
                    path=str(path),
                    line=content[: exc.start].count(b"\n") + 1,
                    column=0,
                    message=f"Invalid UTF-8 content: {exc.reason}",
                )
            ],
            warnings=[],
        )
    if not text.strip():
        return ParseResult(path=path, directives=[], errors=[], warnings=[])
    try:
        tree = get_parser().parse(text)
    except UnexpectedInput as exc:
        logger.debug("Failed to parse %s", path, exc_info=True)
        return ParseResult(
            path=path,
            directives=[],
            errors=[syntax_error(path, text, exc)],
            warnings=[],
        )
    collector = DirectiveCollector(path=path, text=text)
    directives = collector.collect(tree)
    return ParseResult(
        path=path, directives=directives, errors=[], warnings=collector.warnings
    )


def parse_file(path: str | pathlib.Path) -> ParseResult:
    return parse_bytes(read_bytes(path), path)


def raise_for_errors(result: ParseResult) -> ParseResult:
    if result.errors:
        raise LedgerParseError(
            f"Failed to parse {result.path}: {format_diagnostic(result.errors[0])}",
            diagnostics=result.errors,
        )
    return result


def format_diagnostic(diagnostic: Diagnostic) -> str:
    if diagnostic.line > 0:
        location = f"{diagnostic.path}:{diagnostic.line}:{diagnostic.column}"
    else:
        location = diagnostic.path
    lines = [f"{location}: {diagnostic.severity.value}: {diagnostic.message}"]
    if diagnostic.context:
        lines.extend("    " + line for line in diagnostic.context.splitlines())
    return "\n".join(lines)


def format_diagnostics(diagnostics: typing.Iterable[Diagnostic]) -> str:
    return "".join(format_diagnostic(diagnostic) + "\n" for diagnostic in diagnostics)
