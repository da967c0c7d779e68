# ABOUTME: Typed progress events emitted while the orchestrator calls providers.
# ABOUTME: Sinks receive them; NullSink, ListSink and LoggingSink cover the common needs.

import logging
from dataclasses import dataclass
from typing import Literal, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

Phase = Literal["metadata", "assets", "search"]


@dataclass(frozen=True)
class ProviderEvent:
    provider: str
    phase: Phase


@dataclass(frozen=True)
class ProviderStarted(ProviderEvent):
    pass


@dataclass(frozen=True)
class ProviderCompleted(ProviderEvent):
    success: bool
    error: str | None = None
    result_count: int = 0


@dataclass(frozen=True)
class ProviderRetried(ProviderEvent):
    attempt: int
    max_retries: int
    error: str
    delay: float = 0.0


@dataclass(frozen=True)
class ProviderTimedOut(ProviderEvent):
    timeout: float


@runtime_checkable
class ProgressSink(Protocol):
    """Receives progress events.

    For one provider in one phase a sink sees exactly one ProviderStarted,
    any number of ProviderRetried, then exactly one of ProviderCompleted or
    ProviderTimedOut.
    """

    def emit(self, event: ProviderEvent) -> None: ...


class NullSink:
    def emit(self, event: ProviderEvent) -> None:
        pass


class ListSink:
    """Collects events in order; handy for tests and for building reports."""

    def __init__(self) -> None:
        self.events: list[ProviderEvent] = []

    def emit(self, event: ProviderEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: type) -> list[ProviderEvent]:
        return [e for e in self.events if isinstance(e, event_type)]

    def for_provider(self, provider: str) -> list[ProviderEvent]:
        return [e for e in self.events if e.provider == provider]


class LoggingSink:
    """Writes every event to the log at DEBUG, failures at INFO."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def emit(self, event: ProviderEvent) -> None:
        if isinstance(event, ProviderStarted):
            self._log.debug("[%s] %s started", event.phase, event.provider)
        elif isinstance(event, ProviderCompleted):
            if event.success:
                self._log.debug(
                    "[%s] %s completed with %d results",
                    event.phase,
                    event.provider,
                    event.result_count,
                )
            else:
                self._log.info("[%s] %s failed: %s", event.phase, event.provider, event.error)
        elif isinstance(event, ProviderRetried):
            self._log.info(
                "[%s] %s retry %d/%d in %.1fs: %s",
                event.phase,
                event.provider,
                event.attempt,
                event.max_retries,
                event.delay,
                event.error,
            )
        elif isinstance(event, ProviderTimedOut):
            self._log.info(
                "[%s] %s timed out after %.1fs", event.phase, event.provider, event.timeout
            )
