"""Host name resolution for registrations."""

from __future__ import annotations

import ipaddress
import logging
import socket
from collections.abc import Callable

from ..core.exceptions import MalformedInput

logger = logging.getLogger(__name__)

Resolver = Callable[[str], str]


def resolve_host_ip(host: str) -> str:
    """Resolve a registered host to one IP address.

    IP literals (including bracketed IPv6, with or without a port) are
    returned as-is. For names, the first IPv4 result is preferred, falling
    back to the first result.

    Raises:
        MalformedInput: the host does not resolve.
    """
    literal = host
    if host.startswith("["):
        # [v6] or [v6]:port
        inner, _, rest = host[1:].partition("]")
        if not rest or (rest.startswith(":") and rest[1:].isdigit()):
            literal = inner
    try:
        return str(ipaddress.ip_address(literal))
    except ValueError:
        pass

    name = host.rsplit(":", 1)[0] if host.count(":") == 1 else host
    try:
        infos = socket.getaddrinfo(name, None, proto=socket.IPPROTO_TCP)
    except (socket.gaierror, UnicodeError) as e:
        logger.info("Host %s does not resolve: %s", host, e)
        raise MalformedInput("payload.host does not resolve", field="host", value=host) from e

    addresses = [info[4][0] for info in infos]
    if not addresses:
        raise MalformedInput("payload.host does not resolve", field="host", value=host)
    for address in addresses:
        if ":" not in address:
            return address
    return addresses[0]
