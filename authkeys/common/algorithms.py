import enum

from authkeys.common.exception import UnknownKeyType


class KeyType(str, enum.Enum):
    # Names as written in authorized_keys files (sshd(8) AUTHORIZED_KEYS FILE FORMAT)
    ECDSA_SHA2_NISTP256 = "ecdsa-sha2-nistp256"
    ECDSA_SHA2_NISTP384 = "ecdsa-sha2-nistp384"
    ECDSA_SHA2_NISTP521 = "ecdsa-sha2-nistp521"
    SSH_ED25519 = "ssh-ed25519"
    SSH_DSS = "ssh-dss"
    SSH_RSA = "ssh-rsa"

    @staticmethod
    def is_recognized(token: str) -> bool:
        return token.lower() in _KEY_TYPES_BY_NAME

    @staticmethod
    def from_token(token: str) -> "KeyType":
        """Map a dashed identifier to its key type, ignoring case.

        The whole token has to match one of the known names, prefixes are not
        accepted.

        :raises UnknownKeyType: if the token names no supported algorithm
        """
        try:
            return _KEY_TYPES_BY_NAME[token.lower()]
        except KeyError as e:
            raise UnknownKeyType(token) from e

    @property
    def family(self) -> str:
        if self.value.startswith("ecdsa-"):
            return "ecdsa"
        return _FAMILIES[self]

    def __str__(self) -> str:
        return self.value


_KEY_TYPES_BY_NAME = {key_type.value: key_type for key_type in KeyType}

_FAMILIES = {
    KeyType.SSH_ED25519: "ed25519",
    KeyType.SSH_DSS: "dsa",
    KeyType.SSH_RSA: "rsa",
}
