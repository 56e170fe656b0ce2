"""Typed domain exceptions for match scoring.

All domain-level rule violations use subclasses of MatchRuleError
rather than raw ValueError. Pure logic raises them before touching any
state; the match manager logs and re-raises them at the service boundary.
"""


class MatchRuleError(Exception):
    """Base exception for match scoring rule violations.

    Every subclass is recoverable: the caller's match state is left exactly
    as it was before the rejected request.
    """


class EventValidationError(MatchRuleError):
    """Request carries invalid input (bad fan, unknown or duplicate player id, empty winner list, etc.)."""


class EmptyHistoryError(MatchRuleError):
    """Rollback was requested with nothing left to undo."""


class NotFoundError(MatchRuleError):
    """Referenced object does not exist."""


class MatchNotFoundError(NotFoundError):
    """No match is registered under the given id."""

    def __init__(self, match_id: str) -> None:
        self.match_id = match_id
        super().__init__(f"match {match_id!r} not found")


class StreakNotFoundError(NotFoundError):
    """The ordered pair has no active streak to act on."""

    def __init__(self, winner_id: int, loser_id: int) -> None:
        self.winner_id = winner_id
        self.loser_id = loser_id
        super().__init__(f"no active streak for pair ({winner_id}, {loser_id})")


class SurrenderPendingError(MatchRuleError):
    """A surrender confirmation must be answered before any other operation."""


class NoPendingSurrenderError(MatchRuleError):
    """A surrender answer was given while no confirmation is pending."""


class MatchImportError(MatchRuleError):
    """Imported payload cannot be parsed into a match."""
