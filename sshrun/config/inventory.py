"""Inventory file parsing.

Each non-blank line describes one target::

    [user@]host[:port][::password][:::sudo-password]

``#`` starts a comment. A backslash escapes ``@``, ``:``, ``#`` and
``\\`` so they can appear literally in any field.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

from pydantic import BaseModel

from .loader import ConfigError
from .protocol import Target

logger = logging.getLogger(__name__)

_ESCAPABLE = frozenset("@:#\\")

# Number of consecutive colons -> field they introduce.
_SEPARATORS = {1: "port", 2: "password", 3: "sudo_password"}
_FIELD_ORDER = ["address", "port", "password", "sudo_password"]

_Char = tuple[str, bool]


class InventoryLineError(ValueError):
    """Raised when an inventory line cannot be parsed."""


class SkippedLine(BaseModel):
    """An inventory line that was ignored because it is invalid."""

    line_number: int
    reason: str


class Inventory(BaseModel):
    """Targets parsed from an inventory, plus the lines skipped."""

    targets: list[Target]
    skipped: list[SkippedLine] = []


def _scan(line: str) -> list[_Char]:
    """Resolve escapes and drop the comment.

    Returns ``(char, escaped)`` pairs with unescaped surrounding
    whitespace removed.
    """
    chars: list[_Char] = []
    i = 0
    while i < len(line):
        ch = line[i]
        if ch == "\\" and i + 1 < len(line) and line[i + 1] in _ESCAPABLE:
            chars.append((line[i + 1], True))
            i += 2
        elif ch == "#":
            break
        else:
            chars.append((ch, False))
            i += 1

    while chars and not chars[-1][1] and chars[-1][0].isspace():
        chars.pop()
    start = 0
    while start < len(chars) and not chars[start][1]:
        if not chars[start][0].isspace():
            break
        start += 1
    return chars[start:]


def _split_fields(chars: list[_Char]) -> dict[str, list[_Char]]:
    """Split scanned characters on unescaped colon runs."""
    fields: dict[str, list[_Char]] = {"address": []}
    current = "address"
    i = 0
    while i < len(chars):
        if chars[i] == (":", False):
            run = 1
            while i + run < len(chars) and chars[i + run] == (":", False):
                run += 1
            if run not in _SEPARATORS:
                raise InventoryLineError(
                    f"unexpected run of {run} ':' separators"
                )
            field = _SEPARATORS[run]
            if _FIELD_ORDER.index(field) <= _FIELD_ORDER.index(current):
                raise InventoryLineError(
                    f"'{':' * run}' separator out of order"
                )
            current = field
            fields[current] = []
            i += run
        else:
            fields[current].append(chars[i])
            i += 1
    return fields


def _text(chars: list[_Char]) -> str:
    return "".join(ch for ch, _ in chars)


def _parse_port(raw: list[_Char]) -> int:
    text = _text(raw).strip()
    if not text:
        raise InventoryLineError("empty port")
    elif not text.isdigit():
        raise InventoryLineError(f"invalid port {text!r}")
    port = int(text)
    if not 1 <= port <= 65535:
        raise InventoryLineError(f"port {port} out of range 1-65535")
    return port


def parse_inventory_line(
    line: str,
    default_user: str,
    default_port: int = 22,
) -> Optional[Target]:
    """Parse a single inventory line.

    Returns ``None`` for lines that are blank once the comment
    is removed. Raises ``InventoryLineError`` for malformed lines.
    """
    chars = _scan(line)
    if not chars:
        return None

    fields = _split_fields(chars)

    address = fields["address"]
    at_positions = [i for i, c in enumerate(address) if c == ("@", False)]
    if len(at_positions) > 1:
        raise InventoryLineError("more than one '@' in address")
    elif at_positions:
        at = at_positions[0]
        user = _text(address[:at]).strip() or default_user
        host = _text(address[at + 1 :]).strip()
    else:
        user = default_user
        host = _text(address).strip()

    if not host:
        raise InventoryLineError("missing host")
    elif any(ch.isspace() for ch in host):
        raise InventoryLineError(f"invalid host {host!r}")

    port = _parse_port(fields["port"]) if "port" in fields else default_port
    password = _text(fields.get("password", [])) or None
    sudo_password = _text(fields.get("sudo_password", [])) or None

    return Target(
        user=user,
        host=host,
        port=port,
        password=password,
        sudo_password=sudo_password,
    )


def parse_inventory(
    lines: Iterable[str | bytes],
    default_user: str,
    default_port: int = 22,
) -> Inventory:
    """Parse inventory lines, skipping (and recording) invalid ones.

    Lines given as bytes are decoded as UTF-8 one at a time, so an
    undecodable line is skipped like any other invalid line.
    """
    targets: list[Target] = []
    skipped: list[SkippedLine] = []
    for number, line in enumerate(lines, start=1):
        try:
            text = _decode(line)
            target = parse_inventory_line(
                text.rstrip("\r\n"), default_user, default_port
            )
        except InventoryLineError as e:
            logger.debug("Skipping invalid inventory line %d: %s", number, e)
            skipped.append(SkippedLine(line_number=number, reason=str(e)))
            continue
        if target is not None:
            targets.append(target)
    return Inventory(targets=targets, skipped=skipped)


def _decode(line: str | bytes) -> str:
    if isinstance(line, str):
        return line
    try:
        return line.decode("utf-8")
    except UnicodeDecodeError as e:
        raise InventoryLineError(f"not valid UTF-8 at byte {e.start}") from e


def load_inventory(
    path: str | Path,
    default_user: str,
    default_port: int = 22,
) -> Inventory:
    """Read and parse an inventory file."""
    p = Path(path)
    if not p.is_file():
        raise ConfigError(f"Inventory file not found: {path}")
    try:
        with open(p, "rb") as f:
            lines = f.readlines()
    except OSError as e:
        raise ConfigError(f"Cannot read inventory {path}: {e}") from e
    return parse_inventory(lines, default_user, default_port)
