"""Parse chat messages into attendance commands."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

COMMAND_NAMES = ("checkin", "checkout", "status", "vacation")

COMMAND_PATTERN = re.compile(
    r"^/(?P<name>" + "|".join(COMMAND_NAMES) + r")(?:\s+(?P<param>.*))?$",
    re.DOTALL,
)
ORGANIZATION_PATTERN = re.compile(r"^org:(?P<slug>[\w-]+)(?:\s+(?P<rest>.*))?$", re.DOTALL)


@dataclass(slots=True, frozen=True)
class Command:
    """A normalized command: name, free-text parameter and optional organization slug."""

    name: str
    param: Optional[str] = None
    organization: Optional[str] = None


def parse_command(text: str) -> Optional[Command]:
    """Return the command at the start of ``text`` or ``None``.

    ``/checkin org:acme from home`` targets organization ``acme`` with the
    note ``from home``.
    """

    match = COMMAND_PATTERN.match(text.strip())
    if not match:
        return None

    param = (match.group("param") or "").strip() or None
    organization = None
    if param:
        selector = ORGANIZATION_PATTERN.match(param)
        if selector:
            organization = selector.group("slug")
            param = (selector.group("rest") or "").strip() or None
    return Command(name=match.group("name"), param=param, organization=organization)


__all__ = ["COMMAND_NAMES", "Command", "parse_command"]
