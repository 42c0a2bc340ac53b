class HRMSError(Exception):
    """Base class for errors raised by the portal."""


class AuthError(HRMSError):
    """A credential or session operation was rejected by the remote store."""


class StoreError(HRMSError):
    """A table operation against the remote store failed."""


class ProfileResolutionDegraded(HRMSError):
    """Profile lookup failed and a fallback was used.

    Raised and handled inside the session manager only; callers never see it.
    """
