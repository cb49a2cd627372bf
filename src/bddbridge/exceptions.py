class BridgeError(Exception):
    """Base exception for all bddbridge errors."""


class StepTimeout(BridgeError):
    """Raised when a step attempt exceeds its timeout."""

    def __init__(self, pattern: str, timeout: int):
        super().__init__(f"Step {pattern!r} timed out after {timeout}ms")
        self.pattern = pattern
        self.timeout = timeout


class StepCancelled(BridgeError):
    """Raised inside an expired blocking attempt when it issues another browser command."""


class HookFailure(BridgeError):
    """A hook callback raised. Only ever logged, never raised into the engine."""

    def __init__(self, event: str, error: BaseException):
        super().__init__(f"{event} has thrown an error: {error}")
        self.event = event
        self.error = error


class EngineStartupFailure(BridgeError):
    """Raised when behave cannot be configured or started. Aborts the whole run."""
