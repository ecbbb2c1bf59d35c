from typing import Iterator

from authkeys import authkeys_logging
from authkeys.common.exception import LineParseFailure, ParseError
from authkeys.openssh.cursor import is_ascii_whitespace
from authkeys.openssh.grammar import parse_key_authorization
from authkeys.openssh.models import CommentLine, KeyLine, KeysFile

logger = authkeys_logging.init_logging("openssh")

COMMENT_PREFIX = "#"


def iter_lines(text: str) -> Iterator[str]:
    """
    Split text on LF, dropping a CR in front of it.

    A newline at the very end does not start another line, so empty text has
    no lines at all.
    """
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    for line in lines:
        yield line[:-1] if line.endswith("\r") else line


def is_comment(line: str) -> bool:
    return line.startswith(COMMENT_PREFIX) or all(is_ascii_whitespace(c) for c in line)


def parse_file(text: str) -> KeysFile:
    """
    Parse the whole content of an authorized_keys file.

    Parsing stops at the first line that is neither a comment nor a valid key
    line; no partial result is returned in that case.

    :raises LineParseFailure: with the zero-based index of the offending line
    """
    keys_file = KeysFile()
    for index, line in enumerate(iter_lines(text)):
        if is_comment(line):
            keys_file.lines.append(CommentLine(line))
            continue

        try:
            authorization = parse_key_authorization(line)
        except ParseError as e:
            raise LineParseFailure(index, e) from e
        keys_file.lines.append(KeyLine(authorization))

    logger.debug("Parsed %d lines with %d keys", len(keys_file), sum(1 for _ in keys_file.keys()))
    return keys_file
