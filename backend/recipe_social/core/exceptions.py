"""Error taxonomy for the messaging, follow and notification core.

Routes never build these into HTTP responses themselves: ``main.py`` installs
one handler for ``RecipeSocialError`` that uses ``status_code`` and the message.
"""


class RecipeSocialError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequestError(RecipeSocialError):
    """Missing or equal identities, missing required fields. Raised before any write."""
    status_code = 400


class PermissionDeniedError(RecipeSocialError):
    status_code = 403


class NotFoundError(RecipeSocialError):
    status_code = 404


class StoreError(RecipeSocialError):
    """The primary write or read against the database failed."""
    status_code = 503
