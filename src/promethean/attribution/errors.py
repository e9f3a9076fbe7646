"""Exceptions raised by the attribution engine."""


class MetricsUnavailableError(RuntimeError):
    """No event source could be read, so no metrics can be computed."""

    def __init__(self, failures: dict[str, BaseException]) -> None:
        self.failures = failures
        detail = ", ".join(f"{name}: {exc}" for name, exc in failures.items())
        super().__init__(f"All event sources unavailable ({detail})")
