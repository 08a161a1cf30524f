"""Exception types for fastmirror.

Only :class:`NoViableEndpoints` ever reaches callers of the engine.  The
technique signals are raised inside a probe and turned into a typed
:class:`~fastmirror.models.ProbeResult` by the prober.
"""

from __future__ import annotations


class FastMirrorError(Exception):
    """Base class for all fastmirror errors."""


class NoViableEndpoints(FastMirrorError):
    """No endpoint produced a usable measurement in the given phase."""

    def __init__(self, phase: str, message: str | None = None) -> None:
        self.phase = phase
        self.message = message or f"No viable endpoints after {phase} probing"
        # Readings gathered before the failure, filled in by the engine
        self.snapshot: tuple = ()
        super().__init__(self.message)

    @property
    def kind(self) -> str:
        return "no_viable_endpoints"


class TechniqueUnavailable(FastMirrorError):
    """The technique cannot run in this environment."""


class InconclusiveReading(FastMirrorError):
    """The technique finished but its reading cannot be trusted."""


class TechniqueFailed(FastMirrorError):
    """Definitive transport-level failure reported by a technique."""


class TechniqueTimeout(FastMirrorError):
    """The technique hit its own deadline before answering."""
