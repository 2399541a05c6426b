"""
Error taxonomy for home-dashboard.

None of these are fatal to a session: call sites catch them, log them and
turn them into user-visible feedback.
"""


class DashboardError(Exception):
    """Base exception for home-dashboard."""

    pass


class AuthError(DashboardError):
    """Session establishment failed (the session degrades to anonymous)."""

    pass


class FeedError(DashboardError):
    """The persistence feed rejected a subscribe, write or append."""

    pass


class DispatchError(FeedError):
    """A device write or history append could not be persisted."""

    def __init__(self, message: str, collection: str = "", doc_id: str = "") -> None:
        super().__init__(message)
        self.collection = collection
        self.doc_id = doc_id


class ValidationError(DashboardError, ValueError):
    """Local input check failed before anything was written."""

    pass
