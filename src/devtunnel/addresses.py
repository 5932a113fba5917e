"""Selection of the local addresses the tunnel can target."""

from __future__ import annotations

from collections.abc import Iterable
from typing import NamedTuple

from devtunnel.errors import SelectionError


class LocalAddresses(NamedTuple):
    """The single plain and single TLS address the host is bound to."""

    http: str
    https: str


def _single(addresses: list[str], scheme: str) -> str:
    matches = [a for a in addresses if a.startswith(f"{scheme}://")]
    if len(matches) != 1:
        raise SelectionError(scheme, matches)
    return matches[0]


def select_addresses(addresses: Iterable[str]) -> LocalAddresses:
    """Pick exactly one ``http://`` and one ``https://`` address.

    Raises:
        SelectionError: if either scheme has no match or more than one.
    """
    candidates = list(addresses)
    return LocalAddresses(
        http=_single(candidates, "http"),
        https=_single(candidates, "https"),
    )
