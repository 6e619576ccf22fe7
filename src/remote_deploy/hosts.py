import re
from dataclasses import dataclass

from .config import DEFAULT_HOST, DEFAULT_PORT

_LEADING_INT = re.compile(r'^[+-]?\d+')


@dataclass(frozen=True)
class HostAddress:
    address: str
    port: int

    def as_tuple(self):
        return (self.address, self.port)

    def __str__(self):
        return f"{self.address}:{self.port}"


def _parse_port(text: str, default_port: int) -> int:
    match = _LEADING_INT.match(text.strip())
    if not match:
        return default_port
    port = int(match.group(0))
    if not 0 <= port <= 0xFFFF:
        return default_port
    return port


def parse_host(spec: str, default_host: str = DEFAULT_HOST,
               default_port: int = DEFAULT_PORT) -> HostAddress:
    """
    Parse 'host' or 'host:port'. Never raises; missing or bad parts
    fall back to the defaults.

    Only the 'host:port' form lower-cases and trims the address. A bare
    'host' is used as given.
    """
    separator = spec.find(':')
    if separator < 0:
        return HostAddress(address=spec, port=default_port)

    address = spec[:separator].lower().strip() or default_host
    port = _parse_port(spec[separator + 1:], default_port)
    return HostAddress(address=address, port=port)
