"""Grammar for a single line of an OpenSSH authorized_keys file.

  key-line = [ options WSP ] key-type WSP base64 [ WSP comment ]
  options  = option *("," option)
  option   = ident [ "=" DQUOTE escaped-text DQUOTE ]

The first token of a line is either a key type or an option name, both being
dashed identifiers. The line is read as a bare public key first and, if that
fails, as an option list followed by a public key. Nothing else is retried.

Every rule takes a Cursor and returns the parsed value together with the
cursor after it, or raises a ParseError.
"""

from typing import List, Optional, Tuple

from authkeys import authkeys_logging
from authkeys.common.algorithms import KeyType
from authkeys.common.exception import (
    IncompleteInput,
    InvalidBase64Length,
    KeyNotFoundAfterOptions,
    NoKeyOrOptions,
    ParseError,
    TrailingCharacter,
    UnmatchedToken,
)
from authkeys.openssh.cursor import Cursor, is_ascii_whitespace
from authkeys.openssh.models import KeyAuthorization, KeyOption, KeyOptions, PublicKey

logger = authkeys_logging.init_logging("openssh")

_BASE64_PADDING = "="
_MAX_BASE64_PADDING = 2
_OPTION_SEPARATOR = ","
_OPTION_ASSIGN = "="
_QUOTE = '"'
_ESCAPE = "\\"


def _is_ident_char(char: str) -> bool:
    return char.isascii() and (char.isalnum() or char == "-")


def _is_base64_char(char: str) -> bool:
    return char.isascii() and (char.isalnum() or char in "+/")


def _describe(char: Optional[str]) -> str:
    if char is None:
        return "end of input"
    return f"found {char!r}"


def parse_dashed_ident(cursor: Cursor, context: str = "identifier") -> Tuple[str, Cursor]:
    ident, rest = cursor.take_while(_is_ident_char)
    if not ident:
        if cursor.at_end():
            raise IncompleteInput(context)
        raise UnmatchedToken(context, _describe(cursor.peek()))
    return ident, rest


def parse_key_type(cursor: Cursor) -> Tuple[KeyType, Cursor]:
    token, rest = parse_dashed_ident(cursor, "key type")
    return KeyType.from_token(token), rest


def parse_base64(cursor: Cursor) -> Tuple[str, Cursor]:
    """
    Take the longest run of base64 characters plus at most two '=' of padding.

    The token length has to be a multiple of 4 and the token has to be followed
    by whitespace or the end of input, so a malformed payload is never
    silently truncated.
    """
    _, rest = cursor.take_while(_is_base64_char)
    for _ in range(_MAX_BASE64_PADDING):
        if rest.peek() != _BASE64_PADDING:
            break
        rest = rest.skip_char()

    token = cursor.slice_to(rest)
    if not token:
        if cursor.at_end():
            raise IncompleteInput("base64 encoded key")
        raise UnmatchedToken("base64 encoded key", _describe(cursor.peek()))

    if len(token) % 4 != 0:
        raise InvalidBase64Length(token)

    following = rest.peek()
    if following is not None and not is_ascii_whitespace(following):
        raise TrailingCharacter(following)

    return token, rest


def _require_whitespace(cursor: Cursor, context: str) -> Cursor:
    char = cursor.peek()
    if char is None:
        raise IncompleteInput(context)
    if not is_ascii_whitespace(char):
        raise UnmatchedToken(context, _describe(char))
    return cursor.skip_whitespace()


def parse_public_key(cursor: Cursor) -> Tuple[PublicKey, Cursor]:
    key_type, rest = parse_key_type(cursor)
    rest = _require_whitespace(rest, "whitespace after key type")
    encoded_key, rest = parse_base64(rest)
    return PublicKey(key_type, encoded_key), rest


def parse_option_value(cursor: Cursor) -> Tuple[str, Cursor]:
    """
    Parse a double quoted option value and return the text between the quotes.

    A backslash escapes the character following it, so neither \\" nor \\\\
    ends the value. Escape sequences are returned as written.
    """
    first = cursor.peek()
    if first is None:
        raise IncompleteInput("option value")
    if first != _QUOTE:
        raise UnmatchedToken("opening quote of option value", _describe(first))

    start = cursor.skip_char()
    escaped = False
    for offset, char in enumerate(start.remaining):
        if char == _QUOTE and not escaped:
            end = start.advance(offset)
            return start.slice_to(end), end.skip_char()
        escaped = not escaped and char == _ESCAPE

    raise IncompleteInput("option value, missing closing quote")


def parse_option(cursor: Cursor) -> Tuple[KeyOption, Cursor]:
    name, rest = parse_dashed_ident(cursor, "option name")
    if rest.peek() != _OPTION_ASSIGN:
        return KeyOption(name), rest

    value, rest = parse_option_value(rest.skip_char())
    return KeyOption(name, value), rest


def parse_options(cursor: Cursor) -> Tuple[KeyOptions, Cursor]:
    """
    Parse a comma separated option list.

    Stops at the first character following an option that is not a comma and
    returns the cursor positioned on it. If no option name starts at the
    cursor, no options and the untouched cursor are returned.
    """
    options: List[KeyOption] = []
    if not _is_ident_char(cursor.peek() or ""):
        return (), cursor

    option, rest = parse_option(cursor)
    options.append(option)
    # After a separator the next option name is mandatory
    while rest.peek() == _OPTION_SEPARATOR:
        option, rest = parse_option(rest.skip_char())
        options.append(option)

    return tuple(options), rest


def parse_comments(cursor: Cursor) -> Tuple[str, Cursor]:
    """Take the rest of the line after leading whitespace, without a trailing CR."""
    start = cursor.skip_whitespace()
    offset = start.find(lambda c: c == "\n")
    end = start.advance(offset) if offset is not None else Cursor(start.text, len(start.text))

    comments = start.slice_to(end)
    if comments.endswith("\r"):
        comments = comments[:-1]
    return comments, end


def _parse_optionless(cursor: Cursor) -> KeyAuthorization:
    key, rest = parse_public_key(cursor)
    comments, _ = parse_comments(rest)
    return KeyAuthorization((), key, comments)


def _parse_optioned(cursor: Cursor, optionless_cause: ParseError) -> KeyAuthorization:
    try:
        options, rest = parse_options(cursor)
    except ParseError as e:
        raise NoKeyOrOptions(cause=e, optionless_cause=optionless_cause) from e

    if not options:
        raise NoKeyOrOptions(optionless_cause=optionless_cause) from optionless_cause

    try:
        rest = _require_whitespace(rest, "whitespace after options")
        key, rest = parse_public_key(rest)
    except ParseError as e:
        raise KeyNotFoundAfterOptions(cause=e, optionless_cause=optionless_cause) from e

    comments, _ = parse_comments(rest)
    return KeyAuthorization(options, key, comments)


def parse_key_authorization(text: str) -> KeyAuthorization:
    """
    Parse one key line of an authorized_keys file.

    :raises KeyNotFoundAfterOptions: the line starts with an option list that is
        not followed by a valid public key
    :raises NoKeyOrOptions: the line starts with neither a public key nor an
        option list
    """
    cursor = Cursor(text)
    try:
        return _parse_optionless(cursor)
    except ParseError as e:
        logger.debug("Line is not a bare public key (%s), trying with leading options", e)
        optionless_cause = e

    return _parse_optioned(cursor, optionless_cause)
