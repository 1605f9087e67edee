"""
Per-site up/down registry.

Every configured site gets exactly one entry at construction, starting as down.
Entries are never added or removed afterwards; looking up or committing an
unknown site raises KeyError.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable


INITIAL_STATUS = False  # down


@dataclass(frozen=True)
class Transition:
    site: str
    previous: bool
    current: bool

    @property
    def changed(self) -> bool:
        return self.previous != self.current

    @property
    def is_down(self) -> bool:
        return not self.current


def status_label(up: bool) -> str:
    return "UP" if up else "DOWN"


class StatusRegistry:
    def __init__(self, sites: Iterable[str]) -> None:
        self._status: dict[str, bool] = {}
        for site in sites:
            self._status.setdefault(site, INITIAL_STATUS)

    def check_transition(self, site: str, current: bool) -> Transition:
        """Compare a fresh probe result with the stored status without storing it."""
        return Transition(site=site, previous=self._status[site], current=bool(current))

    def commit(self, site: str, current: bool) -> None:
        if site not in self._status:
            raise KeyError(site)
        self._status[site] = bool(current)

    def snapshot(self) -> dict[str, bool]:
        return dict(self._status)
