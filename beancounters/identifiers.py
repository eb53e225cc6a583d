import pathlib

from .errors import InvalidIdentifierError


def encode_id(path: str | pathlib.Path, offset: int) -> str:
    """Build the positional id of an entry: `<file-path>:<byte-offset>`.

    The path is kept exactly as given so that decoding reopens the same file.
    """
    if offset < 0:
        raise ValueError(f"Offset must be non-negative, got {offset}")
    return f"{path}:{offset}"


def decode_id(value: str) -> tuple[str, int]:
    path, sep, offset = value.partition(":")
    if not sep or not path:
        raise InvalidIdentifierError(f"Invalid id {value!r}, expected <path>:<offset>")
    if not offset.isdigit() or not offset.isascii():
        raise InvalidIdentifierError(
            f"Invalid id {value!r}, offset {offset!r} is not a non-negative integer"
        )
    return path, int(offset)
