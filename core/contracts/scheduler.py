from typing import Any, Callable, Protocol


class Scheduler(Protocol):
    """A protocol for timer sources used by debouncing and expiry."""

    def schedule(self, delay: float, callback: Callable[[], None]) -> Any:
        """Runs `callback` once after `delay` seconds and returns a handle for `cancel`."""
        ...

    def cancel(self, handle: Any) -> None:
        """Cancels a pending callback. Cancelling a fired or cancelled handle is a no-op."""
        ...

    def time(self) -> float:
        """Returns the current time in seconds."""
        ...
