"""
A client for managing an OAuth handshake with Urban Rivals.

:Example:
    .. code-block:: python

        from uroauth import ConsumerToken, Handshaker, Signer, TokenStore, Transport

        handshaker = Handshaker(
            Signer(ConsumerToken(config.key, config.secret)),
            Transport(),
            TokenStore(),
        )

        # Step 1: Initialize -- ask for a temporary key/secret for the user
        request_token = handshaker.request_token()

        # Step 2: Authorize -- send the user to Urban Rivals to approve us
        print("Point your browser to: %s" % handshaker.authorize_url())
        verifier = input("Verifier: ")

        # Step 3: Complete -- obtain the authorized key/secret
        access_token = handshaker.access_token(verifier)
"""
import logging

from sentry_sdk import capture_exception

from . import settings
from .errors import HandshakeError, TokenStateError
from .functions import ACCESS_TOKEN_STAGE, authorize_url, complete, initiate

logger = logging.getLogger(__name__)


class Handshaker(object):
    """
    Runs the two round-trips of the handshake and records their results in
    a :class:`~uroauth.tokens.TokenStore`.  Nothing is retried; a failed step
    can simply be called again.

    :Parameters:
        signer : :class:`~uroauth.signer.Signer`
            Signs on behalf of the consumer
        transport : :class:`~uroauth.transport.Transport`
            Sends the requests
        token_store : :class:`~uroauth.tokens.TokenStore`
            Receives the tokens
        callback : `str`
            Sent as ``oauth_callback`` with the request token request.
            Defaults to ``settings.UROAUTH_CALLBACK``.
    """

    def __init__(
        self,
        signer,
        transport,
        token_store,
        callback=None,
        request_token_url=None,
        access_token_url=None,
        authorize_base_url=None,
    ):
        self.signer = signer
        self.transport = transport
        self.token_store = token_store
        self.callback = settings.UROAUTH_CALLBACK if callback is None else callback
        self.request_token_url = (
            settings.REQUEST_TOKEN_URL if request_token_url is None else request_token_url
        )
        self.access_token_url = (
            settings.ACCESS_TOKEN_URL if access_token_url is None else access_token_url
        )
        self.authorize_base_url = (
            settings.AUTHORIZE_URL if authorize_base_url is None else authorize_base_url
        )

    def request_token(self):
        """
        Obtain a request token and store it.

        :Returns:
            The :class:`~uroauth.tokens.RequestToken`
        :Raises:
            :class:`~uroauth.errors.HandshakeError` with
            ``stage="request_token"``
        """
        try:
            request_token = initiate(
                self.signer,
                self.transport,
                callback=self.callback,
                url=self.request_token_url,
            )
        except HandshakeError as e:
            logger.warning(e)
            capture_exception(e)
            raise

        self.token_store.set_request_token(request_token)
        logger.info("Request token obtained.")
        return request_token

    def authorize_url(self, callback_url=None):
        """The page where the user approves the stored request token."""
        request_token = self.token_store.require_request_token()
        return authorize_url(
            request_token.token, callback_url=callback_url, base_url=self.authorize_base_url
        )

    def access_token(self, verifier, request_token=None):
        """
        Exchange the request token for an access token and store it.

        :Parameters:
            verifier : `str`
                The verifier the user got after approving us
            request_token : :class:`~uroauth.tokens.RequestToken` | `None`
                A request token obtained elsewhere.  Defaults to the stored
                one.

        :Returns:
            The freshly obtained :class:`~uroauth.tokens.AccessToken`
        :Raises:
            :class:`~uroauth.errors.HandshakeError` with
            ``stage="access_token"``
        """
        try:
            if request_token is None:
                try:
                    request_token = self.token_store.require_request_token()
                except TokenStateError as e:
                    raise HandshakeError(ACCESS_TOKEN_STAGE, str(e), cause=e) from e
            access_token = complete(
                self.signer,
                self.transport,
                request_token,
                verifier,
                url=self.access_token_url,
            )
        except HandshakeError as e:
            logger.warning(e)
            capture_exception(e)
            raise

        self.token_store.set_access_token(access_token, request_token=request_token)
        logger.info("Access token obtained.")
        return access_token
