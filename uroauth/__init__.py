"""Provides an OAuth1.0a client for the Urban Rivals API and its batched
query protocol."""
from .version import __version__
from .client import UROAuth
from .errors import (
    HandshakeError,
    InvalidBatchError,
    MissingResultError,
    NotAuthenticatedError,
    OAuthException,
    ProtocolError,
    SigningError,
    TokenStateError,
    TransportError,
)
from .functions import authorize_url, complete, initiate
from .handshaker import Handshaker
from .proxy import ApiProxy, CallGroup
from .queries import BatchQueryExecutor, CallSpec, QueryResult
from .signer import Signer
from .tokens import (
    AccessToken,
    ConsumerToken,
    CredentialPair,
    RequestToken,
    TokenState,
    TokenStore,
)
from .transport import Transport

__all__ = [
    "__version__",
    "AccessToken",
    "ApiProxy",
    "authorize_url",
    "BatchQueryExecutor",
    "CallGroup",
    "CallSpec",
    "complete",
    "ConsumerToken",
    "CredentialPair",
    "Handshaker",
    "HandshakeError",
    "initiate",
    "InvalidBatchError",
    "MissingResultError",
    "NotAuthenticatedError",
    "OAuthException",
    "ProtocolError",
    "QueryResult",
    "RequestToken",
    "Signer",
    "SigningError",
    "TokenState",
    "TokenStateError",
    "TokenStore",
    "Transport",
    "TransportError",
    "UROAuth",
]
