import pathlib

import pytest

from beancounters.errors import ErrorKind
from beancounters.errors import InvalidIdentifierError
from beancounters.identifiers import decode_id
from beancounters.identifiers import encode_id


def test_encode_id():
    assert encode_id("data/2024-01.bean", 42) == "data/2024-01.bean:42"
    assert encode_id(pathlib.PurePosixPath("data/2024-01.bean"), 0) == (
        "data/2024-01.bean:0"
    )


def test_encode_id_negative_offset():
    with pytest.raises(ValueError):
        encode_id("data/2024-01.bean", -1)


@pytest.mark.parametrize(
    "path, offset",
    [
        ("data/2024-01.bean", 0),
        ("/var/lib/ledger/2024-12.bean", 123456),
        ("2024-01.bean", 1),
        ("data dir/with spaces.bean", 7),
    ],
)
def test_decode_encoded_id(path: str, offset: int):
    assert decode_id(encode_id(path, offset)) == (path, offset)


@pytest.mark.parametrize(
    "value",
    [
        "",
        "data/2024-01.bean",
        ":12",
        "data/2024-01.bean:",
        "data/2024-01.bean:-1",
        "data/2024-01.bean:1.5",
        "data/2024-01.bean:abc",
        "data/2024-01.bean:1:2",
        "data/2024-01.bean: 3",
    ],
)
def test_decode_invalid_id(value: str):
    with pytest.raises(InvalidIdentifierError) as exc_info:
        decode_id(value)
    assert exc_info.value.kind == ErrorKind.INVALID_IDENTIFIER
