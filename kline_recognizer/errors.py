class RecognitionError(Exception):
    """Base class for everything the recognizer raises on purpose."""


class InvalidInputError(RecognitionError, ValueError):
    """Precondition failure: missing image, empty region list, bad array."""


class ConfigError(RecognitionError, ValueError):
    """A RecognitionConfig value that can never work."""


class StageError(RecognitionError):
    """Wraps an exception raised inside one pipeline stage."""

    def __init__(self, stage: str, cause: BaseException):
        self.stage = stage
        self.cause = cause
        super().__init__(f"{stage} stage failed: {cause}")
