from typing import Any, Optional


class AuthKeysException(Exception):
    """Base class for all authkeys exceptions"""

    _msg_fmt = "An unknown exception occurred."

    def __init__(self, message: Optional[str] = None, **kwargs: Any):
        if not message:
            message = self._msg_fmt % kwargs

        super().__init__(message)


class ConfigurationError(AuthKeysException):
    _msg_fmt = "Invalid configuration for component '%(component)s'."


class ParseError(AuthKeysException):
    """Raised by the authorized_keys grammar when a line cannot be parsed."""

    _msg_fmt = "Could not parse authorized_keys line."


class UnknownKeyType(ParseError):
    _msg_fmt = "Unknown key type '%(token)s'."

    def __init__(self, token: str):
        self.token = token
        super().__init__(token=token)


class IncompleteInput(ParseError):
    _msg_fmt = "Unexpected end of input while parsing %(context)s."

    def __init__(self, context: str):
        self.context = context
        super().__init__(context=context)


class UnmatchedToken(ParseError):
    _msg_fmt = "Expected %(context)s: %(detail)s"

    def __init__(self, context: str, detail: str):
        self.context = context
        self.detail = detail
        super().__init__(context=context, detail=detail)


class InvalidBase64Length(ParseError):
    _msg_fmt = "Unexpected length of base64 value (%(length)d), expected a multiple of 4."

    def __init__(self, token: str):
        self.token = token
        super().__init__(length=len(token))


class TrailingCharacter(ParseError):
    _msg_fmt = "Unexpected trailing character %(char)r on base64 value."

    def __init__(self, char: str):
        self.char = char
        super().__init__(char=char)


class KeyAuthorizationError(ParseError):
    """
    Neither reading of a line produced a key authorization.

    `optionless_cause` is the failure of the attempt that reads the line as a
    bare public key, `cause` the failure of the attempt that reads a leading
    option list first. Either may be None.
    """

    def __init__(self, cause: Optional[ParseError] = None, optionless_cause: Optional[ParseError] = None):
        self.cause = cause
        self.optionless_cause = optionless_cause
        super().__init__()


class KeyNotFoundAfterOptions(KeyAuthorizationError):
    _msg_fmt = "Could not find a valid public key after the options."


class NoKeyOrOptions(KeyAuthorizationError):
    _msg_fmt = "Could not find a valid options string, or public key."


class LineParseFailure(AuthKeysException):
    _msg_fmt = "parsing failed on line %(line_index)d: %(cause)s"

    def __init__(self, line_index: int, cause: ParseError):
        self.line_index = line_index
        self.cause = cause
        super().__init__(line_index=line_index, cause=cause)
