from __future__ import annotations

import ipaddress
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import InvalidHostFormat


class Host(BaseModel):
    """Identity of one cluster member.

    Hosts compare and hash by value, which makes them usable as registry keys.

    Examples
    --------
    >>> Host(address="10.0.0.1", port=9160) == Host.parse("10.0.0.1:9160")
    True
    >>> str(Host(address="::1", port=9160))
    '[::1]:9160'
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    address: str = Field(min_length=1)
    port: int = Field(ge=1, le=65535)

    @field_validator("address")
    @classmethod
    def _validate_address(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("address must not be blank")
        if ":" in stripped:
            try:
                ipaddress.IPv6Address(stripped)
            except ValueError:
                raise ValueError(f"{stripped!r} contains ':' but is not an IPv6 address") from None
        return stripped

    @classmethod
    def parse(cls, value: str, default_port: int | None = None) -> Self:
        """Parse ``"host:port"`` (or ``"[ipv6]:port"``) into a host.

        Parameters
        ----------
        value
            The string to parse.
        default_port
            Port used when `value` carries none. Without it a bare address is rejected.

        Raises
        ------
        InvalidHostFormat
            If the string is malformed or the port is out of range.
        """
        if not isinstance(value, str):
            raise InvalidHostFormat(value, "expected a string")

        text = value.strip()
        address: str
        port_text: str | None

        if text.startswith("["):
            end = text.find("]")
            if end == -1:
                raise InvalidHostFormat(value, "unterminated '[' in IPv6 address")
            address = text[1:end]
            rest = text[end + 1 :]
            if rest and not rest.startswith(":"):
                raise InvalidHostFormat(value)
            port_text = rest[1:] if rest else None
        elif text.count(":") == 1:
            address, port_text = text.split(":")
        elif ":" in text:
            raise InvalidHostFormat(value, "IPv6 addresses must be bracketed, e.g. '[::1]:9160'")
        else:
            address, port_text = text, None

        if port_text is None:
            if default_port is None:
                raise InvalidHostFormat(value)
            port = default_port
        elif port_text.isascii() and port_text.isdigit():
            port = int(port_text)
        else:
            raise InvalidHostFormat(value, f"port {port_text!r} is not a number")

        try:
            return cls(address=address, port=port)
        except ValidationError as e:
            raise InvalidHostFormat(value, e.errors()[0]["msg"]) from e

    def __str__(self) -> str:
        if ":" in self.address:
            return f"[{self.address}]:{self.port}"
        return f"{self.address}:{self.port}"
