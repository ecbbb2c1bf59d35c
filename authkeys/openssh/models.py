"""Data model of a parsed OpenSSH authorized_keys file."""

import re
from dataclasses import dataclass, field
from typing import Iterator, List, NamedTuple, Optional, Tuple, Union

from authkeys.common.algorithms import KeyType

# Options documented in sshd(8), lower-cased. Only used for reporting, the
# grammar accepts any dashed identifier as an option name.
KNOWN_OPTIONS = frozenset(
    [
        "agent-forwarding",
        "cert-authority",
        "command",
        "environment",
        "expiry-time",
        "from",
        "no-agent-forwarding",
        "no-port-forwarding",
        "no-pty",
        "no-touch-required",
        "no-user-rc",
        "no-x11-forwarding",
        "permitlisten",
        "permitopen",
        "port-forwarding",
        "principals",
        "pty",
        "restrict",
        "tunnel",
        "user-rc",
        "verify-required",
        "x11-forwarding",
    ]
)

_ENCODED_KEY_RE = re.compile(r"[A-Za-z0-9+/]+={0,2}")


class KeyOption(NamedTuple):
    name: str
    value: Optional[str] = None

    @property
    def is_known(self) -> bool:
        return self.name.lower() in KNOWN_OPTIONS


KeyOptions = Tuple[KeyOption, ...]


@dataclass(frozen=True)
class PublicKey:
    key_type: KeyType
    encoded_key: str

    def __post_init__(self) -> None:
        if not isinstance(self.key_type, KeyType):
            raise ValueError(f"Expected a KeyType, got {self.key_type!r}")
        if not _ENCODED_KEY_RE.fullmatch(self.encoded_key) or len(self.encoded_key) % 4 != 0:
            raise ValueError(f"Not a valid base64 encoded key: {self.encoded_key!r}")


@dataclass(frozen=True)
class KeyAuthorization:
    """
    One key line of an authorized_keys file.

    Option values are kept exactly as written between the quotes, escape
    sequences are not decoded. Options are stored as a tuple, whatever
    iterable is passed in, so authorizations can be hashed.
    """

    options: KeyOptions
    key: PublicKey
    comments: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "options", tuple(self.options))

    def has_option(self, name: str) -> bool:
        name = name.lower()
        return any(option.name.lower() == name for option in self.options)

    def option_values(self, name: str) -> List[Optional[str]]:
        """Return the values of all options called name, in line order."""
        name = name.lower()
        return [option.value for option in self.options if option.name.lower() == name]


@dataclass(frozen=True)
class CommentLine:
    text: str


@dataclass(frozen=True)
class KeyLine:
    authorization: KeyAuthorization


KeysFileLine = Union[CommentLine, KeyLine]


@dataclass
class KeysFile:
    lines: List[KeysFileLine] = field(default_factory=list)

    def __iter__(self) -> Iterator[KeysFileLine]:
        return iter(self.lines)

    def __len__(self) -> int:
        return len(self.lines)

    def keys(self) -> Iterator[KeyAuthorization]:
        for line in self.lines:
            if isinstance(line, KeyLine):
                yield line.authorization

    def comments(self) -> Iterator[str]:
        for line in self.lines:
            if isinstance(line, CommentLine):
                yield line.text
