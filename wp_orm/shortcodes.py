"""
Shortcode processing for post content.

Shortcodes are the bracketed tags WordPress embeds in post bodies, either
self-contained (``[gallery ids="1,2"]``, ``[br /]``) or wrapping content
(``[caption]<img ...> A caption[/caption]``). Only shortcodes with a
registered handler are touched; every other bracket sequence is returned
exactly as stored.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from .exceptions import ShortcodeError

logger = logging.getLogger(__name__)

ShortcodeHandler = Callable[["Shortcode"], Optional[str]]

_NAME_RE = re.compile(r"^[^<>&/\[\]\x00-\x20=]+$")

_ATTRS_RE = re.compile(
    r"""([\w-]+)\s*=\s*"([^"]*)"(?:\s|$)"""
    r"""|([\w-]+)\s*=\s*'([^']*)'(?:\s|$)"""
    r"""|([\w-]+)\s*=\s*([^\s'"]+)(?:\s|$)"""
    r"""|"([^"]*)"(?:\s|$)"""
    r"""|'([^']*)'(?:\s|$)"""
    r"""|(\S+)(?:\s|$)"""
)


@dataclass(frozen=True)
class Shortcode:
    """A single shortcode occurrence handed to a handler."""

    name: str
    parameters: Dict[str, str] = field(default_factory=dict)
    positional: Tuple[str, ...] = ()
    content: Optional[str] = None
    text: str = ""

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.parameters.get(key.lower(), default)


def parse_attributes(text: str) -> Tuple[Dict[str, str], Tuple[str, ...]]:
    """Split a shortcode attribute string into named and positional values.

    Named keys are lower-cased. Quoting with double quotes, single quotes or
    no quotes at all is accepted.
    """
    text = text.replace("\u00a0", " ").replace("\u200b", " ")
    named: Dict[str, str] = {}
    positional: List[str] = []

    for match in _ATTRS_RE.finditer(text):
        groups = match.groups()
        if groups[0] is not None:
            named[groups[0].lower()] = groups[1]
        elif groups[2] is not None:
            named[groups[2].lower()] = groups[3]
        elif groups[4] is not None:
            named[groups[4].lower()] = groups[5]
        elif groups[6] is not None:
            positional.append(groups[6])
        elif groups[7] is not None:
            positional.append(groups[7])
        elif groups[8] is not None:
            positional.append(groups[8])

    return named, tuple(positional)


def _build_pattern(names: List[str]) -> re.Pattern:
    # Longest names first so "gallery-item" wins over "gallery".
    alternatives = "|".join(
        re.escape(name) for name in sorted(names, key=len, reverse=True)
    )
    return re.compile(
        r"\[(\[?)"
        rf"({alternatives})"
        r"(?![\w-])"
        r"([^\]/]*(?:/(?!\])[^\]/]*)*?)"
        r"(?:(/)\]"
        r"|\](?:([^\[]*(?:\[(?!/\2\])[^\[]*)*)\[/\2\])?)"
        r"(\]?)",
        re.DOTALL,
    )


class ShortcodeRegistry:
    """Named shortcode handlers and the processor that applies them.

    Usage:
        registry = ShortcodeRegistry()
        registry.register("year", lambda sc: "2024")
        registry.process("Copyright [year]")  # -> "Copyright 2024"

    A handler returning ``None`` removes the shortcode span entirely.
    Enclosed content is processed before the enclosing handler runs, up to
    ``max_depth`` levels of nesting.

    ``version`` increases whenever the set of handlers changes.
    """

    def __init__(self, max_depth: Optional[int] = None):
        if max_depth is None:
            from .config import get_settings

            max_depth = get_settings().shortcode_max_depth
        self.max_depth = max_depth
        self._handlers: Dict[str, ShortcodeHandler] = {}
        self._pattern: Optional[re.Pattern] = None
        self.version = 0

    def register(self, name: str, handler: ShortcodeHandler) -> None:
        if not name or not _NAME_RE.match(name):
            raise ShortcodeError(f"Invalid shortcode name: {name!r}")
        if not callable(handler):
            raise ShortcodeError(f"Handler for shortcode {name!r} is not callable")
        self._handlers[name] = handler
        self._pattern = None
        self.version += 1

    def remove(self, name: str) -> None:
        if self._handlers.pop(name, None) is not None:
            self._pattern = None
            self.version += 1

    def clear(self) -> None:
        self._handlers.clear()
        self._pattern = None
        self.version += 1

    def has(self, name: str) -> bool:
        return name in self._handlers

    @property
    def names(self) -> List[str]:
        return list(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)

    def process(self, text: Optional[str]) -> Optional[str]:
        """Replace every registered shortcode in ``text`` with its handler output."""
        if not text or not self._handlers or "[" not in text:
            return text
        return self._process(text, depth=0)

    strip = process

    def _process(self, text: str, depth: int) -> str:
        if self._pattern is None:
            self._pattern = _build_pattern(list(self._handlers))

        def replace(match: re.Match) -> str:
            # [[name]] is an escaped shortcode and renders literally
            if match.group(1) == "[" and match.group(6) == "]":
                return match.group(0)[1:-1]

            name = match.group(2)
            content = match.group(5)
            if content is not None and depth + 1 < self.max_depth:
                content = self._process(content, depth + 1)

            parameters, positional = parse_attributes(match.group(3) or "")
            shortcode = Shortcode(
                name=name,
                parameters=parameters,
                positional=positional,
                content=content,
                text=match.group(0),
            )
            output = self._handlers[name](shortcode)
            if output is None:
                logger.debug("Shortcode [%s] removed", name)
                output = ""
            return match.group(1) + str(output) + match.group(6)

        return self._pattern.sub(replace, text)
