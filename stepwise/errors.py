"""Error types raised by stepwise."""


class StepwiseError(Exception):
    """Base class for all stepwise errors."""


class MissingFieldError(StepwiseError, ValueError):
    """Raised when a required request field was never set."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"A required field is missing: {field}")


class InvalidInputError(StepwiseError, ValueError):
    """Raised when request or message construction input is inconsistent."""

    def __init__(self, details: str) -> None:
        super().__init__(f"Invalid input: {details}")


class StageError(StepwiseError, ValueError):
    """Raised when a builder method is called out of order."""

    def __init__(self, method: str, stage: str, allowed: str) -> None:
        super().__init__(
            f"Cannot call {method}() in the {stage} stage. Allowed here: {allowed}."
        )


class ToolCallError(StepwiseError):
    """Raised inside tool dispatch. Never escapes the dispatcher."""


class ModelError(StepwiseError):
    """Raised when the language model capability fails."""

    def __init__(self, details: str, cause: BaseException | None = None) -> None:
        self.details = details
        self.cause = cause
        super().__init__(f"Model error: {details}")


class HookError(StepwiseError):
    """Raised when a hook callback fails or returns the wrong type."""

    def __init__(self, hook: str, cause: BaseException) -> None:
        self.hook = hook
        self.cause = cause
        super().__init__(f"Hook {hook} failed: {type(cause).__name__}: {cause}")
