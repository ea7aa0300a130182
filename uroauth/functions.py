"""
A set of stateless functions that complete the steps of an OAuth handshake
with Urban Rivals.  :class:`~uroauth.handshaker.Handshaker` wraps them and
remembers the tokens; use these directly when the tokens live elsewhere
(a web session, a database).

:Example:
    .. code-block:: python

        from uroauth import ConsumerToken, Signer, Transport
        from uroauth.functions import initiate, authorize_url, complete

        signer = Signer(ConsumerToken(config.key, config.secret))
        transport = Transport()

        # Step 1: Initialize -- ask for a temporary key/secret for the user
        request_token = initiate(signer, transport)

        # Step 2: Authorize -- send the user to Urban Rivals to approve us
        print("Point your browser to: %s" % authorize_url(request_token.token))
        verifier = input("Verifier: ")

        # Step 3: Complete -- obtain the authorized key/secret
        access_token = complete(signer, transport, request_token, verifier)
"""
import logging
from urllib.parse import parse_qsl, parse_qs, urlencode, urlparse, urlunparse

from . import settings
from .errors import HandshakeError, TokenStateError, TransportError
from .tokens import AccessToken, CredentialPair, RequestToken

logger = logging.getLogger(__name__)

REQUEST_TOKEN_STAGE = "request_token"
ACCESS_TOKEN_STAGE = "access_token"


def parse_token_response(content, token_class, stage):
    """
    Read ``oauth_token`` and ``oauth_token_secret`` out of a form-encoded
    token response.
    """
    if isinstance(content, bytes):
        content = content.decode("utf-8", "replace")

    credentials = parse_qs(content or "")

    if not credentials:
        raise HandshakeError(
            stage,
            "Expected x-www-form-urlencoded response, but got something "
            "else: {0!r}".format(content[:200] if content else content),
        )
    elif "oauth_token" not in credentials or "oauth_token_secret" not in credentials:
        # Only the names; the values may be secrets.
        raise HandshakeError(
            stage,
            "Response lacks token information, got fields: {0}".format(
                sorted(credentials)
            ),
        )

    return token_class(
        credentials["oauth_token"][0], credentials["oauth_token_secret"][0]
    )


def _post_for_token(transport, url, oauth_params, signer, token_class, stage):
    headers = signer.authorization_header(oauth_params)
    try:
        response = transport.post(url, headers=headers)
    except TransportError as e:
        raise HandshakeError(stage, str(e), cause=e) from e
    return parse_token_response(response.content, token_class, stage)


def initiate(signer, transport, callback="oob", url=None):
    """
    Ask for a request token.

    :Parameters:
        signer : :class:`~uroauth.signer.Signer`
            Signs on behalf of the consumer
        transport : :class:`~uroauth.transport.Transport`
            Sends the request
        callback : `str`
            Callback URL sent as ``oauth_callback``. Defaults to 'oob'.
        url : `str`
            Request token endpoint. Defaults to ``settings.REQUEST_TOKEN_URL``.

    :Returns:
        A :class:`~uroauth.tokens.RequestToken`
    """
    url = settings.REQUEST_TOKEN_URL if url is None else url
    oauth_params = signer.sign("POST", url, callback_uri=callback)
    logger.info("Requesting a request token.")
    return _post_for_token(
        transport, url, oauth_params, signer, RequestToken, REQUEST_TOKEN_STAGE
    )


def complete(signer, transport, request_token, verifier, url=None):
    """
    Exchange an authorized request token for an access token.

    :Parameters:
        signer : :class:`~uroauth.signer.Signer`
            Signs on behalf of the consumer
        transport : :class:`~uroauth.transport.Transport`
            Sends the request
        request_token : :class:`~uroauth.tokens.RequestToken`
            The token the user approved.  Returned by `initiate()`.
        verifier : `str`
            The verifier handed to the user (or to the callback) on approval
        url : `str`
            Access token endpoint. Defaults to ``settings.ACCESS_TOKEN_URL``.

    :Returns:
        An :class:`~uroauth.tokens.AccessToken` that can be stored and used
        to sign API calls.
    """
    url = settings.ACCESS_TOKEN_URL if url is None else url
    # Caller-side failures carry a non-transport cause, so they never count
    # as rejected by the server.
    if request_token is None:
        e = TokenStateError("No request token to exchange.")
        raise HandshakeError(ACCESS_TOKEN_STAGE, str(e), cause=e)
    if not verifier:
        e = ValueError("A verifier is required.")
        raise HandshakeError(ACCESS_TOKEN_STAGE, str(e), cause=e)
    try:
        request_token = RequestToken(*request_token)
    except (TypeError, ValueError) as e:
        raise HandshakeError(
            ACCESS_TOKEN_STAGE, "Invalid request token: {0}".format(e), cause=e
        ) from e

    oauth_params = signer.sign(
        "POST", url, credentials=request_token, verifier=verifier
    )
    logger.info("Exchanging the request token for an access token.")
    return _post_for_token(
        transport, url, oauth_params, signer, AccessToken, ACCESS_TOKEN_STAGE
    )


def authorize_url(request_token, callback_url=None, base_url=None):
    """
    Build the URL of the page where the user approves the request token.

    :Parameters:
        request_token : `str` | :class:`~uroauth.tokens.RequestToken`
            The request token, or just its public half
        callback_url : `str` | `None`
            Where to send the user afterwards, if anywhere
        base_url : `str`
            Authorize page. Defaults to ``settings.AUTHORIZE_URL``.
    """
    base_url = settings.AUTHORIZE_URL if base_url is None else base_url
    if isinstance(request_token, CredentialPair):
        request_token = request_token.token
    parsed_url = urlparse(base_url)

    params = parse_qsl(parsed_url.query, keep_blank_values=True)
    params.append(("oauth_token", request_token))
    if callback_url:
        params.append(("oauth_callback", callback_url))

    return urlunparse(parsed_url._replace(query=urlencode(params)))
