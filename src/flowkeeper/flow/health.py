"""Root health tracking.

If a flow server crashes we don't want to keep restarting servers for that
root, but we also don't want to disable flow for every other root in the
project. A root is blacklisted once and stays blacklisted for the lifetime of
the tracker.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from flowkeeper.flow.types import ExitStatus, RootHealth

logger = logging.getLogger(__name__)

Signature = tuple[int | None, str | None]

# Observed flow crashes exit with code 2 and no signal. Killed servers report
# no code and a signal, so they never match.
DEFAULT_CRASH_SIGNATURES: frozenset[Signature] = frozenset({(2, None)})


@dataclass(frozen=True, slots=True)
class CrashPolicy:
    """Which process exits count as a server crash.

    Only exact (code, signal) matches blacklist a root. New crash signatures
    should be added with extend().
    """

    signatures: frozenset[Signature] = DEFAULT_CRASH_SIGNATURES

    @classmethod
    def from_pairs(cls, pairs: Iterable[Signature]) -> CrashPolicy:
        return cls(signatures=frozenset((code, sig) for code, sig in pairs))

    def extend(self, *pairs: Signature) -> CrashPolicy:
        return CrashPolicy(signatures=self.signatures | frozenset(pairs))

    def is_crash(self, status: ExitStatus) -> bool:
        return status.signature in self.signatures


class RootHealthTracker:
    """Remembers the roots whose flow server crashed."""

    def __init__(self, policy: CrashPolicy | None = None):
        self.policy = policy or CrashPolicy()
        self._failed_roots: set[Path] = set()

    def is_blacklisted(self, root: Path) -> bool:
        return Path(root) in self._failed_roots

    def health(self, root: Path) -> RootHealth:
        return RootHealth.BLACKLISTED if self.is_blacklisted(root) else RootHealth.HEALTHY

    def mark_crashed(self, root: Path) -> None:
        root = Path(root)
        if root not in self._failed_roots:
            logger.warning("Blacklisting flow root %s", root)
        self._failed_roots.add(root)

    def observe_exit(self, root: Path, status: ExitStatus) -> bool:
        """Record a server exit. Returns True if it was classified as a crash."""
        if not self.policy.is_crash(status):
            logger.debug("flow server for %s exited (%s)", root, status)
            return False
        logger.error("Flow server unexpectedly exited: %s (%s)", root, status)
        self.mark_crashed(root)
        return True

    @property
    def blacklisted(self) -> frozenset[Path]:
        return frozenset(self._failed_roots)
