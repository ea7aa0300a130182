"""
Errors raised while signing, handshaking or querying the Urban Rivals API.

Every error derives from :class:`OAuthException`, so calling code that does
not care about the detail can catch that one class.
"""


class OAuthException(Exception):
    """Base class for every error raised by uroauth."""


class SigningError(OAuthException):
    """Consumer credentials are missing or the signature method is unusable."""


class TransportError(OAuthException):
    """
    The request could not be sent, or the server answered with a non-2xx
    status.

    :Parameters:
        status_code : `int` | `None`
            ``None`` when the server could not be reached at all.
        response : :class:`requests.Response` | `None`
            The response, when there was one.
    """

    def __init__(self, message, status_code=None, response=None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class HandshakeError(OAuthException):
    """
    A step of the OAuth handshake failed.

    ``stage`` is ``"request_token"`` or ``"access_token"``; ``cause`` is the
    underlying exception, or ``None`` when the response was malformed.
    """

    def __init__(self, stage, message, cause=None):
        super().__init__("{stage}: {message}".format(stage=stage, message=message))
        self.stage = stage
        self.cause = cause

    @property
    def unreachable(self):
        """True when the token endpoint could not be reached."""
        return isinstance(self.cause, TransportError) and self.cause.status_code is None

    @property
    def rejected(self):
        """True when the server answered but did not hand out a token."""
        if self.cause is None:
            return True
        return isinstance(self.cause, TransportError) and not self.unreachable


class NotAuthenticatedError(OAuthException):
    """An operation needing an access token ran before the handshake finished."""


class TokenStateError(OAuthException):
    """A token was stored in a state that does not allow it."""


class ProtocolError(OAuthException):
    """The batch query response is not the JSON object we expect."""


class MissingResultError(OAuthException):
    def __init__(self, name):
        super().__init__("Response holds no result for call {0!r}".format(name))
        self.name = name


class InvalidBatchError(OAuthException, ValueError):
    """The batch is empty or names the same call twice."""
