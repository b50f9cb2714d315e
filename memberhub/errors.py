"""Error taxonomy shared by the gateway, the store and the blob store.

Every error maps to one HTTP status code and is rendered as
``{"message": "..."}`` by the handlers registered in ``memberhub.main``.
"""


class MemberHubError(Exception):
    """Base class for errors that surface to API callers"""

    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
        self.message = message


class NotFoundError(MemberHubError):
    status_code = 404

    def __init__(self, message: str = "Not found"):
        super().__init__(message)


class ValidationError(MemberHubError):
    status_code = 400

    def __init__(self, message: str = "Invalid request"):
        super().__init__(message)


class CapacityError(MemberHubError):
    """RSVP rejected because the event is full"""

    status_code = 400

    def __init__(self, message: str = "Event is full"):
        super().__init__(message)


class DuplicateError(MemberHubError):
    """RSVP rejected because the member already attends"""

    status_code = 400

    def __init__(self, message: str = "Member has already RSVP'd to this event"):
        super().__init__(message)


class Unauthorized(MemberHubError):
    status_code = 401

    def __init__(self, message: str = "Missing bearer token"):
        super().__init__(message)


class Forbidden(MemberHubError):
    status_code = 403

    def __init__(self, message: str = "Invalid or insufficient credentials"):
        super().__init__(message)


class UploadError(MemberHubError):
    status_code = 400

    def __init__(self, message: str = "Upload failed"):
        super().__init__(message)


class StoreUnavailableError(MemberHubError):
    """Backing store could not be read or written.

    The detail is kept for logs; clients only ever see the generic message.
    """

    status_code = 500
    public_message = "Service temporarily unavailable"

    def __init__(self, detail: str = "Store unavailable"):
        super().__init__(self.public_message)
        self.detail = detail
