"""Typed errors raised by the synchronization engines.

Business code raises these with structured context; the scheduler job
runner (and the per-agent / per-trade-list isolation points of the scanner)
decide whether to continue or abort and do the logging. ``context()``
returns the attributes as log fields.
"""

from datetime import date


class SyncError(Exception):
    """Base exception for all synchronization errors."""

    def context(self) -> dict:
        return {"error": str(self), "error_type": type(self).__name__}


class ProviderError(SyncError):
    """Raised when the currency provider cannot deliver rates for a date."""

    def __init__(self, message: str, day: date | None = None) -> None:
        super().__init__(message)
        self.day = day

    def context(self) -> dict:
        ctx = super().context()
        if self.day is not None:
            ctx["date"] = self.day.isoformat()
        return ctx


class AgentUnreachableError(SyncError):
    """Raised when an agent cannot be reached or returns an unusable payload.

    Covers TLS setup failures, network errors, timeouts, non-success
    status codes and malformed responses.
    """

    def __init__(self, message: str, agent_id: int | None = None, agent: str | None = None) -> None:
        super().__init__(message)
        self.agent_id = agent_id
        self.agent = agent

    def context(self) -> dict:
        ctx = super().context()
        ctx.update(agent_id=self.agent_id, agent=self.agent)
        return ctx


class TranslationError(SyncError):
    """Raised when a reported trade cannot be converted to canonical form."""

    def __init__(
        self,
        message: str,
        trade_index: int | None = None,
        field: str | None = None,
        value: object = None,
    ) -> None:
        super().__init__(message)
        self.trade_index = trade_index
        self.field = field
        self.value = value

    def context(self) -> dict:
        ctx = super().context()
        ctx.update(trade_index=self.trade_index, field=self.field, value=self.value)
        return ctx


class TimezoneResolutionError(SyncError):
    """Raised when a trading system's exchange timezone cannot be resolved."""

    def __init__(self, message: str, timezone_name: str | None = None) -> None:
        super().__init__(message)
        self.timezone_name = timezone_name

    def context(self) -> dict:
        ctx = super().context()
        ctx["timezone"] = self.timezone_name
        return ctx


class PersistenceError(SyncError):
    """Raised when a database read, write or commit fails."""


class PublishError(SyncError):
    """Raised when a message cannot be handed to the message bus."""

    def __init__(self, message: str, topic: str | None = None) -> None:
        super().__init__(message)
        self.topic = topic

    def context(self) -> dict:
        ctx = super().context()
        ctx["topic"] = self.topic
        return ctx
