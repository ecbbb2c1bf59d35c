from authkeys.common.algorithms import KeyType
from authkeys.openssh.grammar import parse_key_authorization as parse_line
from authkeys.openssh.keys_file import parse_file
from authkeys.openssh.models import (
    CommentLine,
    KeyAuthorization,
    KeyLine,
    KeyOption,
    KeyOptions,
    KeysFile,
    KeysFileLine,
    PublicKey,
)

__all__ = [
    "CommentLine",
    "KeyAuthorization",
    "KeyLine",
    "KeyOption",
    "KeyOptions",
    "KeyType",
    "KeysFile",
    "KeysFileLine",
    "PublicKey",
    "parse_file",
    "parse_line",
]
