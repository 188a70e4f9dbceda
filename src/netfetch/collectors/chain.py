"""
Fallback chains of detection strategies.

A chain is an ordered list of strategies for one fact. Strategies are tried
in order until one returns a usable value; when every strategy fails the
chain yields the fact's default. Nothing raised by a strategy escapes
``FallbackChain.run``.
"""

from __future__ import annotations

import copy
import logging
import sys
from dataclasses import dataclass
from typing import Any, Callable, Iterable

logger = logging.getLogger(__name__)

LINUX = "linux"
DARWIN = "darwin"
WINDOWS = "windows"
BSD = "bsd"

ALL_PLATFORMS = frozenset({LINUX, DARWIN, WINDOWS, BSD})
UNIX = frozenset({LINUX, DARWIN, BSD})

UNKNOWN = "Unknown"


def current_platform() -> str:
    """Map sys.platform onto one of the strategy platform keys."""
    system = sys.platform
    if system.startswith("linux"):
        return LINUX
    if system == "darwin":
        return DARWIN
    if system in ("win32", "cygwin"):
        return WINDOWS
    if "bsd" in system or system.startswith("dragonfly"):
        return BSD
    return system


def is_usable(value: Any) -> bool:
    """Default acceptance test: reject None, blanks, "Unknown" and empty containers."""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip()) and value != UNKNOWN
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) > 0
    return True


@dataclass(frozen=True)
class Strategy:
    """One way of detecting a fact."""

    name: str
    detect: Callable[[], Any]
    platforms: frozenset[str] = ALL_PLATFORMS

    def supports(self, platform: str) -> bool:
        return platform in self.platforms


class FallbackChain:
    """Ordered strategies for a single fact."""

    def __init__(
        self,
        fact: str,
        strategies: Iterable[Strategy],
        default: Any = None,
        accept: Callable[[Any], bool] = is_usable,
    ):
        self.fact = fact
        self.strategies = list(strategies)
        self.default = default
        self.accept = accept

    def for_platform(self, platform: str) -> FallbackChain:
        """Return a copy holding only the strategies that apply to ``platform``."""
        return FallbackChain(
            self.fact,
            [s for s in self.strategies if s.supports(platform)],
            default=self.default,
            accept=self.accept,
        )

    @property
    def names(self) -> list[str]:
        return [s.name for s in self.strategies]

    def run(self) -> Any:
        """Try each strategy in order and return the first usable value."""
        for strategy in self.strategies:
            try:
                value = strategy.detect()
            except Exception as e:
                logger.debug(f"{self.fact}: strategy '{strategy.name}' failed: {e}")
                continue
            if self.accept(value):
                logger.debug(f"{self.fact}: resolved by '{strategy.name}'")
                return value
        logger.debug(f"{self.fact}: no strategy succeeded")
        return copy.copy(self.default)
