"""Intent classifier faults.

Only these two conditions are treated as errors by the resolution
pipeline. Missing teams, empty query results and unknown intents are
ordinary answers, not exceptions.
"""


class IntentModelError(RuntimeError):
    """Base class for classifier lifecycle faults."""


class ModelNotReady(IntentModelError):
    """Raised when classification is requested before a model is active."""

    def __init__(self, message: str = "Model not ready") -> None:
        super().__init__(message)


class ModelShapeMismatch(IntentModelError):
    """Raised when a feature vector does not fit the active model's input layer."""

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Shape mismatch: model expects {expected} features, got {actual}"
        )
