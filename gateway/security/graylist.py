# gateway/security/graylist.py
from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Literal, Optional, Tuple, Union

from starlette.requests import Request

log = logging.getLogger(__name__)

Network = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]
EntryKind = Literal["address", "block"]


def classify(entry: str) -> EntryKind:
    """
    Exact address when the entry has no '/' and exactly four dotted parts;
    anything else is treated as a CIDR block.
    """
    if "/" not in entry and len(entry.split(".")) == 4:
        return "address"
    return "block"


@dataclass(frozen=True)
class Graylist:
    """
    IP allow-list built once at startup (exact addresses + CIDR blocks).

    Entries are used verbatim. An empty entry is not an exact address, so it
    must parse as a block and fails; a padded address is kept as written.
    """

    authorized_addrs: FrozenSet[str]
    authorized_blocks: Tuple[Network, ...]

    @classmethod
    def from_entries(cls, entries: Iterable[str]) -> "Graylist":
        addrs = set()
        blocks = []
        for entry in entries:
            if classify(entry) == "address":
                addrs.add(entry)
                continue
            try:
                blocks.append(ipaddress.ip_network(entry, strict=False))
            except ValueError as exc:
                raise ValueError(f"invalid IP_GRAYLIST entry {entry!r}: {exc}") from exc
        return cls(authorized_addrs=frozenset(addrs), authorized_blocks=tuple(blocks))

    @classmethod
    def from_csv(cls, raw: Optional[str]) -> Optional["Graylist"]:
        """``None`` when nothing is configured, i.e. IP filtering disabled."""
        if not raw:
            return None
        graylist = cls.from_entries(raw.split(","))
        log.info(
            "graylist loaded: %d addresses, %d blocks",
            len(graylist.authorized_addrs),
            len(graylist.authorized_blocks),
        )
        return graylist

    def allows(self, address: Optional[str]) -> bool:
        if not address:
            return False
        if address in self.authorized_addrs:
            return True
        try:
            addr = ipaddress.ip_address(address)
        except ValueError:
            return False
        return any(addr.version == net.version and addr in net for net in self.authorized_blocks)


def remote_address(request: Request) -> Optional[str]:
    """First X-Forwarded-For hop when a proxy supplied one, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    client = request.client
    return client.host if client is not None and client.host else None
