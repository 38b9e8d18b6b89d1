class LendingError(Exception):
    """Base class for errors reported back to the API caller."""

    status_code = 400

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {"error": self.message}


class NotFound(LendingError):
    status_code = 404


class Conflict(LendingError):
    """The book already has an open loan."""

    status_code = 400


class InvalidState(LendingError):
    """A return was attempted on a link that is not open for that pair."""

    status_code = 400


class ValidationError(LendingError):
    status_code = 400


class PersistenceError(LendingError):
    status_code = 500
