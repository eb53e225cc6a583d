from .data_types import ParseResult
from .data_types import Span
from .data_types import TxnDirective
from .errors import NotFoundError


def transaction_span(txn: TxnDirective) -> Span:
    """Byte range from the date token to the last token of the transaction's last line.

    The end is the maximum over the date, the narration, every posting (account,
    amount, currency, cost and price) and the directive's trailing tokens, so no
    part of the last line is left behind.
    """
    ends = [txn.date_span.end, txn.span.end]
    if txn.narration_span is not None:
        ends.append(txn.narration_span.end)
    for posting in txn.postings:
        ends.append(posting.account_span.end)
        if posting.amount_span is not None:
            ends.append(posting.amount_span.end)
        ends.append(posting.span.end)
    return Span(start=txn.date_span.start, end=max(ends))


def find_transaction(result: ParseResult, offset: int) -> TxnDirective:
    for txn in result.transactions():
        if txn.date_span.start == offset:
            return txn
    raise NotFoundError(f"No transaction starts at {result.path}:{offset}")


def resolve_transaction_span(result: ParseResult, offset: int) -> Span:
    return transaction_span(find_transaction(result, offset))
