import itertools
import typing


def make_byte_offset_mapper(text: str) -> typing.Callable[[int], int]:
    """Return a function mapping character offsets in `text` to offsets in its UTF-8 encoding.

    Lark reports token positions as character offsets while ledger ids and spans
    are byte offsets into the file.
    """
    if text.isascii():
        return lambda pos: pos
    offsets = [0, *itertools.accumulate(len(char.encode("utf8")) for char in text)]
    return offsets.__getitem__
