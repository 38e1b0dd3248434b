"""
Exception types shared by the services and the route layer

Each exception carries the HTTP status the routes answer with, so a route
can do ``return jsonify({'error': e.message}), e.status_code``.
"""


class CratesError(Exception):
    """Base class for errors surfaced to API callers"""
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(CratesError):
    """Missing or malformed input"""
    status_code = 400


class AuthError(CratesError):
    """Missing, invalid or expired credentials, or an unverified account"""
    status_code = 401


class NotFoundError(CratesError):
    status_code = 404


class ConflictError(CratesError):
    """Resource already exists"""
    status_code = 409


class UpstreamError(CratesError):
    """Raised when Discogs, Spotify or SendGrid fail"""
    status_code = 500

    def __init__(self, message: str, upstream_status: int = None):
        self.upstream_status = upstream_status
        super().__init__(message)


class DuplicateAlbumError(Exception):
    """Raised by the collection repository when the unique index rejects an insert"""


class EnrichmentCancelled(CratesError):
    """An enrichment run was cancelled before every track was processed"""
    status_code = 409
