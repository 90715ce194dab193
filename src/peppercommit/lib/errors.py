class PepperCommitError(Exception):
    """Base class for every commit/reveal failure.

    ``exit_code`` is the process exit status the CLI uses for this error.
    """
    exit_code = 1

    def __init__(self, message: str, path: str = None) -> None:
        super().__init__(message)
        self.path = path


class EntropySourceUnavailable(PepperCommitError):
    exit_code = 3


class EmptyInput(PepperCommitError, ValueError):
    exit_code = 4


class SerializationFailure(PepperCommitError):
    exit_code = 5


class WriteFailure(PepperCommitError):
    exit_code = 6


class AlreadyExists(PepperCommitError):
    exit_code = 7


class NotFound(PepperCommitError):
    exit_code = 8


class ParseFailure(PepperCommitError, ValueError):
    exit_code = 9


class IntegrityMismatch(PepperCommitError):
    exit_code = 10
