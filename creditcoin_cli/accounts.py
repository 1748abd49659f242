"""SS58 account identifiers."""

from __future__ import annotations

from dataclasses import dataclass

from substrateinterface.utils.ss58 import ss58_decode, ss58_encode

from .config import DEFAULT_SS58_FORMAT


class InvalidAddressError(ValueError):
    """Raised when a string is not a valid SS58 address."""


@dataclass(frozen=True)
class AccountId:
    """A 32-byte account public key."""

    public_key: bytes

    def __post_init__(self) -> None:
        if len(self.public_key) != 32:
            raise InvalidAddressError(
                f"Account ids are 32 bytes, got {len(self.public_key)}"
            )

    @classmethod
    def from_ss58(cls, address: str, ss58_format: int | None = None) -> "AccountId":
        try:
            public_key_hex = ss58_decode(address, valid_ss58_format=ss58_format)
        except (ValueError, IndexError) as exc:
            raise InvalidAddressError(f"{address} is not a valid SS58 Address") from exc
        try:
            return cls(bytes.fromhex(public_key_hex))
        except (ValueError, InvalidAddressError) as exc:
            raise InvalidAddressError(f"{address} is not a valid SS58 Address") from exc

    def to_ss58(self, ss58_format: int = DEFAULT_SS58_FORMAT) -> str:
        return ss58_encode(self.public_key, ss58_format=ss58_format)

    @property
    def hex(self) -> str:
        return "0x" + self.public_key.hex()

    def multi_address(self) -> dict[str, str]:
        """Return the ``MultiAddress::Id`` form expected by balance calls."""

        return {"Id": self.hex}

    def __str__(self) -> str:
        return self.to_ss58()
