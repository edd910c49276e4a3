"""Arena error types.

Callers can catch ``ArenaError`` for anything the arena raises on purpose.
Raw simulator or storage exceptions are wrapped before they leave the
core so the caller never has to know which backend is plugged in.
"""

from __future__ import annotations


class ArenaError(Exception):
    """Base for all errors the arena raises deliberately."""


class ValidationError(ArenaError):
    """A warrior (or stored record) failed validation.

    ``diagnostics`` holds the formatted, user-facing messages.
    """

    def __init__(self, message: str, diagnostics: list[str] | None = None):
        self.message = message
        self.diagnostics = list(diagnostics or [])
        super().__init__(message)


class NotFoundError(ArenaError):
    def __init__(self, kind: str, key: object):
        self.kind = kind  # "battle", "player", "warrior", "round"
        self.key = key
        super().__init__(f"{kind.capitalize()} not found: {key!r}")


class MissingReplayDataError(ArenaError):
    """The battle exists but its sources were not retained."""

    def __init__(self, battle_id: object):
        self.battle_id = battle_id
        super().__init__(f"Replay not available for battle {battle_id!r}")


class ConflictError(ArenaError):
    pass


class SimulatorError(ArenaError):
    """The instruction simulator failed mid-round."""

    def __init__(self, details: str = ""):
        self.details = details
        super().__init__(f"simulator failure: {details}")
