"""Domain errors raised by the services and mapped to HTTP statuses by the routes"""


class JammerError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequest(JammerError, ValueError):
    status_code = 400


class InvalidStatus(InvalidRequest):
    pass


class InvalidState(InvalidRequest):
    pass


class AlreadyMember(InvalidRequest):
    pass


class Forbidden(JammerError, PermissionError):
    status_code = 403


class NotFound(JammerError, LookupError):
    status_code = 404
