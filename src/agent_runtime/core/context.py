"""Per-run context carried through model, tool and agent calls."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from agent_runtime.core.errors import RunCancelledError


@dataclass
class RunContext:
    session_key: str = ""
    cancel_event: threading.Event = field(default_factory=threading.Event)
    depth: int = 0

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        self.cancel_event.set()

    def raise_if_cancelled(self) -> None:
        if self.cancel_event.is_set():
            raise RunCancelledError("run cancelled")

    def child(self) -> RunContext:
        """Context for a delegated agent run; shares the cancel signal."""
        return RunContext(
            session_key=self.session_key,
            cancel_event=self.cancel_event,
            depth=self.depth + 1,
        )
