"""
The Urban Rivals API client.

:Example:
    .. code-block:: python

        from uroauth import UROAuth

        client = UROAuth(key=config.key, secret=config.secret)

        client.request_token()
        print("Point your browser to: %s" % client.authorize_url())
        client.access_token(input("Verifier: "))

        clans = client.query("urc.getClans")
        player = client.api.general.getPlayer(context_filter=["player.name"])
"""
import logging

from . import settings
from .handshaker import Handshaker
from .proxy import ApiProxy
from .queries import BatchQueryExecutor, CallSpec
from .signer import Signer
from .tokens import ConsumerToken, TokenStore
from .transport import Transport

logger = logging.getLogger(__name__)


class UROAuth(object):
    """
    Ties the signer, the transport and the token store together.

    :Parameters:
        key : `str`
            Application key. Defaults to ``settings.UROAUTH_CONSUMER_KEY``.
        secret : `str`
            Application secret. Defaults to
            ``settings.UROAUTH_CONSUMER_SECRET``.
        signature_method : `str`
            Defaults to ``settings.UROAUTH_SIGNATURE_METHOD`` (HMAC-SHA1).
        callback : `str`
            Sent as ``oauth_callback`` when asking for a request token.
            Defaults to ``settings.UROAUTH_CALLBACK``.
        transport : :class:`~uroauth.transport.Transport`
            Defaults to a new transport with the configured timeout.
        rsa_key : `str`
            Private key for RSA-SHA1.
        nonce_source, timestamp_source : `callable`
            Passed on to the :class:`~uroauth.signer.Signer`.
    """

    def __init__(
        self,
        key=None,
        secret=None,
        signature_method=None,
        callback=None,
        transport=None,
        rsa_key=None,
        nonce_source=None,
        timestamp_source=None,
        token_store=None,
    ):
        self.consumer = ConsumerToken(
            settings.UROAUTH_CONSUMER_KEY if key is None else key,
            settings.UROAUTH_CONSUMER_SECRET if secret is None else secret,
            (
                settings.UROAUTH_SIGNATURE_METHOD
                if signature_method is None
                else signature_method
            ),
            rsa_key,
        )
        self.signer = Signer(
            self.consumer, nonce_source=nonce_source, timestamp_source=timestamp_source
        )
        self.transport = Transport() if transport is None else transport
        self.token_store = TokenStore() if token_store is None else token_store
        self.handshaker = Handshaker(
            self.signer, self.transport, self.token_store, callback=callback
        )
        self.executor = BatchQueryExecutor(
            self.signer, self.transport, self.token_store
        )
        self.api = ApiProxy(self.executor)
        logger.info("Client constructed.")

    @property
    def state(self):
        return self.token_store.state

    @property
    def request_token_pair(self):
        return self.token_store.request_token

    @property
    def access_token_pair(self):
        return self.token_store.access_token

    def request_token(self):
        return self.handshaker.request_token()

    def authorize_url(self, callback_url=None):
        return self.handshaker.authorize_url(callback_url=callback_url)

    def access_token(self, verifier, request_token=None):
        return self.handshaker.access_token(verifier, request_token=request_token)

    def execute(self, calls):
        return self.executor.execute(calls)

    def multiple_queries(self, *calls):
        """
        Run several calls in one request.  Each call is a :class:`CallSpec`,
        a call name, a ``(name, params)`` tuple, or a dict with ``call`` and optionally
        ``params``, ``itemsFilter`` and ``contextFilter`` keys.
        """
        return self.executor.execute([_as_call_spec(call) for call in calls])

    def single(self, call):
        return self.executor.single(_as_call_spec(call))

    def query(self, name, params=None, items_filter=(), context_filter=()):
        return self.executor.query(
            name,
            params=params,
            items_filter=items_filter,
            context_filter=context_filter,
        )

    def call(self, group, method, params=None, items_filter=(), context_filter=()):
        return self.api.call(
            group,
            method,
            params=params,
            items_filter=items_filter,
            context_filter=context_filter,
        )

    def close(self):
        self.transport.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


def _as_call_spec(call):
    if isinstance(call, CallSpec):
        return call
    if isinstance(call, str):
        return CallSpec(call)
    if isinstance(call, dict):
        return CallSpec(
            call["call"],
            params=call.get("params"),
            items_filter=call.get("itemsFilter", ()),
            context_filter=call.get("contextFilter", ()),
        )
    return CallSpec(*call)
