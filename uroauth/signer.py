"""
OAuth 1.0a request signing.

:class:`Signer` turns a request (method, URL, form parameters) into the set
of ``oauth_*`` protocol parameters, ``oauth_signature`` included.  It does no
I/O; the canonicalization and the MACs come from oauthlib's RFC 5849 helpers.

:Example:
    .. code-block:: python

        from uroauth import ConsumerToken, Signer

        signer = Signer(ConsumerToken("K", "S"))
        oauth_params = signer.sign("POST", "https://www.urban-rivals.com/api/",
                                   {"request": "[]"}, access_token)
        headers = signer.authorization_header(oauth_params)
"""
import secrets
import time
from urllib.parse import parse_qsl, urlparse

from oauthlib.oauth1 import Client
from oauthlib.oauth1.rfc5849 import parameters, signature

from .errors import SigningError
from .tokens import (
    SIGNATURE_HMAC_SHA1,
    SIGNATURE_HMAC_SHA256,
    SIGNATURE_HMAC_SHA512,
    SIGNATURE_METHODS,
    SIGNATURE_PLAINTEXT,
    SIGNATURE_RSA_SHA1,
)

OAUTH_VERSION = "1.0"

_SIGNERS = {
    SIGNATURE_HMAC_SHA1: signature.sign_hmac_sha1_with_client,
    SIGNATURE_HMAC_SHA256: signature.sign_hmac_sha256_with_client,
    SIGNATURE_HMAC_SHA512: signature.sign_hmac_sha512_with_client,
    SIGNATURE_PLAINTEXT: signature.sign_plaintext_with_client,
    SIGNATURE_RSA_SHA1: signature.sign_rsa_sha1_with_client,
}


def generate_nonce():
    """16 random bytes, hex encoded."""
    return secrets.token_hex(16)


def generate_timestamp():
    return int(time.time())


def _as_text(value):
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


def _items(params):
    if not params:
        return []
    if hasattr(params, "items"):
        params = params.items()
    return [(_as_text(key), _as_text(value)) for key, value in params]


class Signer(object):
    """
    :Parameters:
        consumer : :class:`~uroauth.ConsumerToken`
            The application's key, secret and signature method
        nonce_source : `callable`
            Returns a fresh nonce on every call.  Defaults to
            :func:`generate_nonce`.
        timestamp_source : `callable`
            Returns the current time in seconds since the epoch.  Defaults to
            :func:`generate_timestamp`.
    """

    def __init__(self, consumer, nonce_source=None, timestamp_source=None):
        self.consumer = consumer
        self.nonce_source = nonce_source or generate_nonce
        self.timestamp_source = timestamp_source or generate_timestamp
        self._check_consumer()

    def _check_consumer(self):
        consumer = self.consumer
        if consumer is None or not consumer.key:
            raise SigningError("A consumer key is required to sign requests.")
        if consumer.signature_method not in SIGNATURE_METHODS:
            raise SigningError(
                "Unknown signature method {0!r}.".format(consumer.signature_method)
            )
        if consumer.signature_method == SIGNATURE_RSA_SHA1:
            if not consumer.rsa_key:
                raise SigningError("RSA-SHA1 needs the consumer's rsa_key.")
        elif not consumer.secret:
            raise SigningError("A consumer secret is required to sign requests.")

    def oauth_params(self, credentials=None, verifier=None, callback_uri=None):
        """The unsigned protocol parameters, with a fresh nonce and timestamp."""
        params = [
            ("oauth_nonce", _as_text(self.nonce_source())),
            ("oauth_timestamp", _as_text(self.timestamp_source())),
            ("oauth_version", OAUTH_VERSION),
            ("oauth_signature_method", self.consumer.signature_method),
            ("oauth_consumer_key", self.consumer.key),
        ]
        if credentials is not None:
            params.append(("oauth_token", credentials.token))
        if verifier is not None:
            params.append(("oauth_verifier", _as_text(verifier)))
        if callback_uri is not None:
            params.append(("oauth_callback", callback_uri))
        return params

    def base_string(self, method, url, params):
        """
        Build the signature base string::

            METHOD&enc(base URI)&enc(k1=v1&k2=v2...)

        ``params`` are the protocol and body parameters; the query string of
        ``url`` is merged in here.  Keys and values are RFC 3986 encoded and
        sorted on the encoded key, then on the encoded value.
        """
        parsed = urlparse(url)
        collected = _items(params)
        collected.extend(parse_qsl(parsed.query, keep_blank_values=True))
        collected = [(k, v) for k, v in collected if k != "oauth_signature"]
        normalized = signature.normalize_parameters(collected)
        try:
            base_uri = signature.base_string_uri(url)
        except ValueError as e:
            raise SigningError("Cannot sign {0!r}: {1}".format(url, e)) from e
        return signature.signature_base_string(method.upper(), base_uri, normalized)

    def compute_signature(self, base_string, credentials=None):
        consumer = self.consumer
        method = consumer.signature_method
        if method not in _SIGNERS:
            raise SigningError("Unknown signature method {0!r}.".format(method))

        # Only carries the secrets; the base string is built by us.
        client = Client(
            consumer.key,
            client_secret=consumer.secret,
            resource_owner_key=credentials.token if credentials is not None else None,
            resource_owner_secret=(
                credentials.secret if credentials is not None else None
            ),
            rsa_key=consumer.rsa_key,
        )
        try:
            return _SIGNERS[method](base_string, client)
        except ImportError as e:
            raise SigningError(
                "RSA-SHA1 needs the 'rsa' extra (PyJWT and cryptography)."
            ) from e

    def sign(
        self,
        method,
        url,
        body_params=None,
        credentials=None,
        verifier=None,
        callback_uri=None,
    ):
        """
        Sign a request.

        :Parameters:
            method : `str`
                HTTP method
            url : `str`
                Absolute request URL, query string included
            body_params : `dict` | `list` of pairs | `None`
                Form-encoded body parameters.  ``None`` means no body.
            credentials : :class:`~uroauth.tokens.CredentialPair` | `None`
                The token to sign with, if any
            verifier : `str` | `None`
                Sent as ``oauth_verifier`` during the access token exchange
            callback_uri : `str` | `None`
                Sent as ``oauth_callback`` when asking for a request token

        :Returns:
            A `list` of ``(name, value)`` pairs: the ``oauth_*`` parameters,
            ending with ``oauth_signature``.
        """
        self._check_consumer()
        oauth_params = self.oauth_params(
            credentials=credentials, verifier=verifier, callback_uri=callback_uri
        )
        base_string = self.base_string(
            method, url, oauth_params + _items(body_params)
        )
        oauth_params.append(
            ("oauth_signature", self.compute_signature(base_string, credentials))
        )
        return oauth_params

    def authorization_header(self, oauth_params, headers=None):
        """Render signed parameters as an ``Authorization: OAuth ...`` header."""
        return parameters.prepare_headers(oauth_params, headers=headers)
