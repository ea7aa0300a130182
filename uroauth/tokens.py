"""
The tokens (key/secret pairs) that identify actors during and after an
OAuth handshake, and the :class:`TokenStore` that tracks which of them we
hold.
"""
import enum
import threading
from collections import namedtuple

from .errors import NotAuthenticatedError, TokenStateError

SIGNATURE_HMAC_SHA1 = "HMAC-SHA1"
SIGNATURE_HMAC_SHA256 = "HMAC-SHA256"
SIGNATURE_HMAC_SHA512 = "HMAC-SHA512"
SIGNATURE_RSA_SHA1 = "RSA-SHA1"
SIGNATURE_PLAINTEXT = "PLAINTEXT"

SIGNATURE_METHODS = (
    SIGNATURE_HMAC_SHA1,
    SIGNATURE_HMAC_SHA256,
    SIGNATURE_HMAC_SHA512,
    SIGNATURE_RSA_SHA1,
    SIGNATURE_PLAINTEXT,
)


class CredentialPair(namedtuple("CredentialPair", ["token", "secret"])):
    """
    A token and its secret.  Either both are set or there is no pair at all.

    :Parameters:
        token : `str`
            The public half, sent as ``oauth_token``
        secret : `str`
            The private half, only ever used in the signing key
    """

    __slots__ = ()

    def __new__(cls, token, secret):
        if not token or not secret:
            raise ValueError(
                "{0} needs both a token and a secret.".format(cls.__name__)
            )
        return super().__new__(cls, token, secret)

    def __repr__(self):
        # The secret must never end up in logs.
        return "{0}(token={1!r}, secret='***')".format(
            self.__class__.__name__, self.token
        )

    __str__ = __repr__


class RequestToken(CredentialPair):
    """
    Represents a request for access during authorization.  This pair is
    handed out by the request-token endpoint and can be traded for an
    :class:`AccessToken` once the user approved it.
    """

    __slots__ = ()


class AccessToken(CredentialPair):
    """
    Represents an authorized user.  Used to sign every API call after the
    handshake.
    """

    __slots__ = ()


class ConsumerToken(
    namedtuple(
        "ConsumerToken",
        ["key", "secret", "signature_method", "rsa_key"],
        defaults=[SIGNATURE_HMAC_SHA1, None],
    )
):
    """
    Represents the consumer (you).  The key/secret pair is provided by Urban
    Rivals when an application is registered.

    :Parameters:
        key : `str`
            Application key
        secret : `str`
            Application secret
        signature_method : `str`
            One of :data:`SIGNATURE_METHODS`. Defaults to ``HMAC-SHA1``.
        rsa_key : `str` | `None`
            PEM private key, only used by ``RSA-SHA1``
    """

    __slots__ = ()

    def __repr__(self):
        return "ConsumerToken(key={0!r}, secret='***', signature_method={1!r})".format(
            self.key, self.signature_method
        )

    __str__ = __repr__


class TokenState(enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    REQUEST_TOKEN_OBTAINED = "request_token_obtained"
    ACCESS_TOKEN_OBTAINED = "access_token_obtained"


class TokenStore(object):
    """
    Holds the request and access tokens of one client and enforces the order
    in which they may be set::

        UNAUTHENTICATED -> REQUEST_TOKEN_OBTAINED -> ACCESS_TOKEN_OBTAINED

    All reads and writes go through a lock, so the access token can be read
    from several threads once the handshake is done.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._state = TokenState.UNAUTHENTICATED
        self._request_token = None
        self._access_token = None

    @property
    def state(self):
        with self._lock:
            return self._state

    @property
    def request_token(self):
        with self._lock:
            return self._request_token

    @property
    def access_token(self):
        with self._lock:
            return self._access_token

    def set_request_token(self, pair):
        """
        Store a freshly obtained request token.  Storing a second one before
        the access token exists overwrites the first, so a failed handshake
        can simply be started again.
        """
        pair = RequestToken(*pair)
        with self._lock:
            if self._state is TokenState.ACCESS_TOKEN_OBTAINED:
                raise TokenStateError(
                    "An access token is already stored; reset() before "
                    "starting a new handshake."
                )
            self._request_token = pair
            self._state = TokenState.REQUEST_TOKEN_OBTAINED
        return pair

    def set_access_token(self, pair, request_token=None):
        """
        Store the access token that ends the handshake.

        :Parameters:
            pair : :class:`AccessToken`
                The authorized token
            request_token : :class:`RequestToken` | `None`
                The request token that was exchanged, when it was obtained
                outside of this store.  Required if no request token is
                stored.
        """
        pair = AccessToken(*pair)
        with self._lock:
            if self._state is TokenState.UNAUTHENTICATED:
                if request_token is None:
                    raise TokenStateError(
                        "Cannot store an access token without a request token."
                    )
                self._request_token = RequestToken(*request_token)
            self._access_token = pair
            self._state = TokenState.ACCESS_TOKEN_OBTAINED
        return pair

    def require_request_token(self):
        with self._lock:
            if self._request_token is None:
                raise TokenStateError("No request token has been obtained yet.")
            return self._request_token

    def require_access_token(self):
        with self._lock:
            if self._state is not TokenState.ACCESS_TOKEN_OBTAINED:
                raise NotAuthenticatedError(
                    "No access token yet (state: {0}).".format(self._state.value)
                )
            return self._access_token

    def reset(self):
        with self._lock:
            self._request_token = None
            self._access_token = None
            self._state = TokenState.UNAUTHENTICATED
