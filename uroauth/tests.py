# -*- coding: utf-8 -*-
import base64
import hashlib
import hmac
import json
from concurrent.futures import ThreadPoolExecutor
from unittest import TestCase
from unittest.mock import Mock, patch
from urllib.parse import parse_qs, quote, unquote, urlparse

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from requests import Response
from requests.exceptions import ConnectionError

from . import settings
from .client import UROAuth
from .errors import (
    HandshakeError,
    InvalidBatchError,
    MissingResultError,
    NotAuthenticatedError,
    ProtocolError,
    SigningError,
    TokenStateError,
    TransportError,
)
from .factories import (
    AccessTokenFactory,
    CallSpecFactory,
    ConsumerTokenFactory,
    RequestTokenFactory,
)
from .functions import authorize_url, complete, initiate, parse_token_response
from .handshaker import Handshaker
from .proxy import ApiProxy
from .queries import BatchQueryExecutor, CallSpec, QueryResult, encode_calls
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

API_URL = "https://www.urban-rivals.com/api/"
FIXED_NONCE = "0123456789abcdef0123456789abcdef"
FIXED_TIMESTAMP = 1700000000


def _enc(value):
    return quote(value, safe="~")


def _fixed_signer(consumer=None):
    return Signer(
        consumer or ConsumerToken("K", "S"),
        nonce_source=lambda: FIXED_NONCE,
        timestamp_source=lambda: FIXED_TIMESTAMP,
    )


def _response(content, status_code=200):
    response = Mock()
    response.content = content
    response.status_code = status_code
    return response


def _authorization_params(headers):
    """Parse an ``Authorization: OAuth k="v", ...`` header into a dict."""
    header = headers["Authorization"]
    assert header.startswith("OAuth ")
    params = {}
    for part in header[len("OAuth ") :].split(", "):
        key, value = part.split("=", 1)
        params[unquote(key)] = unquote(value.strip('"'))
    return params


def _authenticated_store(access_token=None):
    store = TokenStore()
    store.set_request_token(RequestTokenFactory())
    store.set_access_token(access_token or AccessToken("AT", "AS"))
    return store


class SignerTestCase(TestCase):
    def test_sign_is_deterministic(self):
        """
        With a fixed nonce and timestamp, signing the same request twice
        yields the same parameters.
        """
        signer = _fixed_signer()
        token = AccessToken("AT", "AS")
        body = {"request": '[{"call":"urc.getClans","params":{}}]'}

        first = signer.sign("POST", API_URL, body, token)
        second = signer.sign("POST", API_URL, dict(body), token)

        self.assertEqual(first, second)

    def test_sign_returns_protocol_parameters(self):
        signer = _fixed_signer()

        params = dict(signer.sign("POST", API_URL, credentials=AccessToken("AT", "AS")))

        self.assertEqual(params["oauth_consumer_key"], "K")
        self.assertEqual(params["oauth_nonce"], FIXED_NONCE)
        self.assertEqual(params["oauth_timestamp"], str(FIXED_TIMESTAMP))
        self.assertEqual(params["oauth_signature_method"], "HMAC-SHA1")
        self.assertEqual(params["oauth_version"], "1.0")
        self.assertEqual(params["oauth_token"], "AT")
        self.assertIn("oauth_signature", params)

    def test_sign_without_token_omits_oauth_token(self):
        params = dict(_fixed_signer().sign("POST", API_URL))

        self.assertNotIn("oauth_token", params)

    def test_base_string(self):
        """
        The base string is METHOD&enc(URI)&enc(params), params sorted and
        encoded per RFC 3986.
        """
        signer = _fixed_signer()
        request = '[{"call":"urc.getClans","params":{}}]'
        oauth_params = signer.oauth_params(credentials=AccessToken("AT", "AS"))

        base_string = signer.base_string(
            "post", API_URL, oauth_params + [("request", request)]
        )

        expected_params = "&".join(
            [
                "oauth_consumer_key=K",
                "oauth_nonce=" + FIXED_NONCE,
                "oauth_signature_method=HMAC-SHA1",
                "oauth_timestamp=" + str(FIXED_TIMESTAMP),
                "oauth_token=AT",
                "oauth_version=1.0",
                "request=" + _enc(request),
            ]
        )
        self.assertEqual(
            base_string, "POST&" + _enc(API_URL) + "&" + _enc(expected_params)
        )

    def test_base_string_parameters_decode_to_input(self):
        """
        Decoding the parameter part of the base string gives back every
        parameter unchanged, query string parameters included.
        """
        signer = _fixed_signer()
        params = [
            ("request", '[{"call":"a.b","params":{"q":"x y+z&w=é"}}]'),
            ("empty", ""),
            ("tilde~", "-._~"),
        ]

        base_string = signer.base_string(
            "POST", API_URL + "?page=2&name=%C3%A9t%C3%A9", params
        )

        method, uri, encoded_params = base_string.split("&")
        self.assertEqual(method, "POST")
        self.assertEqual(unquote(uri), API_URL)
        decoded = []
        for pair in unquote(encoded_params).split("&"):
            key, value = pair.split("=", 1)
            decoded.append((unquote(key), unquote(value)))
        self.assertEqual(
            sorted(decoded), sorted(params + [("page", "2"), ("name", "été")])
        )

    def test_hmac_sha1_signature(self):
        """
        The signature is the base64 HMAC-SHA1 of the base string, keyed with
        enc(consumer secret)&enc(token secret).
        """
        signer = _fixed_signer(ConsumerToken("K", "S&1"))
        token = AccessToken("AT", "A S")
        body = {"request": "[]"}

        params = signer.sign("POST", API_URL, body, token)

        base_string = signer.base_string("POST", API_URL, params[:-1] + [("request", "[]")])
        digest = hmac.new(
            b"S%261&A%20S", base_string.encode("utf-8"), hashlib.sha1
        ).digest()
        self.assertEqual(params[-1][0], "oauth_signature")
        self.assertEqual(params[-1][1], base64.b64encode(digest).decode("ascii"))

    def test_body_params_change_signature(self):
        signer = _fixed_signer()
        token = AccessToken("AT", "AS")

        first = dict(signer.sign("POST", API_URL, {"request": "[1]"}, token))
        second = dict(signer.sign("POST", API_URL, {"request": "[2]"}, token))

        self.assertNotEqual(first["oauth_signature"], second["oauth_signature"])

    def test_empty_body_params(self):
        """Empty and missing body params sign the same way."""
        signer = _fixed_signer()

        self.assertEqual(
            signer.sign("POST", API_URL, {}), signer.sign("POST", API_URL, None)
        )

    def test_plaintext_signature(self):
        signer = _fixed_signer(ConsumerToken("K", "S", "PLAINTEXT"))

        params = dict(signer.sign("POST", API_URL, credentials=AccessToken("AT", "AS")))

        self.assertEqual(params["oauth_signature"], "S&AS")
        self.assertEqual(params["oauth_signature_method"], "PLAINTEXT")

    def test_hmac_sha256_signature(self):
        signer = _fixed_signer(ConsumerToken("K", "S", "HMAC-SHA256"))

        params = signer.sign("POST", API_URL)

        base_string = signer.base_string("POST", API_URL, params[:-1])
        digest = hmac.new(b"S&", base_string.encode("utf-8"), hashlib.sha256).digest()
        self.assertEqual(params[-1][1], base64.b64encode(digest).decode("ascii"))

    def test_hmac_sha512_signature(self):
        signer = _fixed_signer(ConsumerToken("K", "S", "HMAC-SHA512"))
        token = AccessToken("AT", "AS")

        params = signer.sign("POST", API_URL, {"request": "[]"}, token)

        base_string = signer.base_string(
            "POST", API_URL, params[:-1] + [("request", "[]")]
        )
        digest = hmac.new(
            b"S&AS", base_string.encode("utf-8"), hashlib.sha512
        ).digest()
        self.assertEqual(params[-1][1], base64.b64encode(digest).decode("ascii"))

    def test_rsa_sha1_signature(self):
        """
        RSA-SHA1 signs the base string with the consumer's private key, and
        the matching public key verifies it.
        """
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        pem = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode("ascii")
        signer = _fixed_signer(ConsumerToken("K", None, "RSA-SHA1", pem))

        params = signer.sign(
            "POST", API_URL, {"request": "[]"}, AccessToken("AT", "AS")
        )

        self.assertEqual(dict(params)["oauth_signature_method"], "RSA-SHA1")
        base_string = signer.base_string(
            "POST", API_URL, params[:-1] + [("request", "[]")]
        )
        # Raises InvalidSignature on mismatch.
        private_key.public_key().verify(
            base64.b64decode(params[-1][1]),
            base_string.encode("utf-8"),
            padding.PKCS1v15(),
            hashes.SHA1(),
        )

    def test_fresh_nonce_and_timestamp(self):
        """Every signature gets its own nonce and the current time."""
        timestamps = Mock(side_effect=[1700000000, 1700000001])
        signer = Signer(ConsumerToken("K", "S"), timestamp_source=timestamps)

        first = dict(signer.sign("POST", API_URL))
        second = dict(signer.sign("POST", API_URL))

        self.assertNotEqual(first["oauth_nonce"], second["oauth_nonce"])
        self.assertEqual(len(first["oauth_nonce"]), 32)
        int(first["oauth_nonce"], 16)
        self.assertEqual(first["oauth_timestamp"], "1700000000")
        self.assertEqual(second["oauth_timestamp"], "1700000001")

    def test_missing_consumer_credentials(self):
        with self.assertRaises(SigningError):
            Signer(ConsumerToken("", "S"))
        with self.assertRaises(SigningError):
            Signer(ConsumerToken("K", None))
        with self.assertRaises(SigningError):
            Signer(None)

    def test_unknown_signature_method(self):
        with self.assertRaises(SigningError):
            Signer(ConsumerToken("K", "S", "MD5"))

    def test_rsa_needs_key(self):
        with self.assertRaises(SigningError):
            Signer(ConsumerToken("K", None, "RSA-SHA1"))

    def test_authorization_header(self):
        signer = _fixed_signer()
        params = signer.sign("POST", API_URL, credentials=AccessToken("AT", "AS"))

        headers = signer.authorization_header(params)

        self.assertTrue(headers["Authorization"].startswith("OAuth "))
        self.assertIn(
            'oauth_signature="{0}"'.format(_enc(dict(params)["oauth_signature"])),
            headers["Authorization"],
        )
        self.assertEqual(_authorization_params(headers), dict(params))


class TokensTestCase(TestCase):
    def test_credential_pair_needs_both_halves(self):
        with self.assertRaises(ValueError):
            CredentialPair("token", "")
        with self.assertRaises(ValueError):
            RequestToken(None, "secret")

    def test_repr_hides_secret(self):
        token = AccessToken("AT", "very-secret")
        consumer = ConsumerToken("K", "consumer-secret")

        self.assertNotIn("very-secret", repr(token))
        self.assertNotIn("very-secret", str(token))
        self.assertIn("AT", repr(token))
        self.assertNotIn("consumer-secret", repr(consumer))

    def test_consumer_defaults_to_hmac_sha1(self):
        self.assertEqual(ConsumerToken("K", "S").signature_method, "HMAC-SHA1")


class TokenStoreTestCase(TestCase):
    def test_starts_unauthenticated(self):
        store = TokenStore()

        self.assertEqual(store.state, TokenState.UNAUTHENTICATED)
        self.assertIsNone(store.request_token)
        self.assertIsNone(store.access_token)

    def test_set_request_token(self):
        store = TokenStore()

        stored = store.set_request_token(("RT", "RS"))

        self.assertEqual(stored, RequestToken("RT", "RS"))
        self.assertIsInstance(store.request_token, RequestToken)
        self.assertEqual(store.state, TokenState.REQUEST_TOKEN_OBTAINED)

    def test_set_request_token_twice_overwrites(self):
        store = TokenStore()
        store.set_request_token(RequestToken("RT1", "RS1"))

        store.set_request_token(RequestToken("RT2", "RS2"))

        self.assertEqual(store.request_token, RequestToken("RT2", "RS2"))
        self.assertEqual(store.state, TokenState.REQUEST_TOKEN_OBTAINED)

    def test_set_access_token(self):
        store = TokenStore()
        store.set_request_token(RequestTokenFactory())

        store.set_access_token(AccessToken("AT", "AS"))

        self.assertEqual(store.state, TokenState.ACCESS_TOKEN_OBTAINED)
        self.assertEqual(store.require_access_token(), AccessToken("AT", "AS"))

    def test_set_access_token_needs_request_token(self):
        """
        TokenStore.set_access_token() should refuse an access token while
        unauthenticated, unless the request token is passed explicitly.
        """
        store = TokenStore()

        with self.assertRaises(TokenStateError):
            store.set_access_token(AccessToken("AT", "AS"))
        self.assertEqual(store.state, TokenState.UNAUTHENTICATED)

        store.set_access_token(
            AccessToken("AT", "AS"), request_token=RequestToken("RT", "RS")
        )
        self.assertEqual(store.state, TokenState.ACCESS_TOKEN_OBTAINED)
        self.assertEqual(store.request_token, RequestToken("RT", "RS"))

    def test_require_access_token_too_early(self):
        store = TokenStore()
        with self.assertRaises(NotAuthenticatedError):
            store.require_access_token()

        store.set_request_token(RequestTokenFactory())
        with self.assertRaises(NotAuthenticatedError):
            store.require_access_token()

    def test_require_request_token(self):
        store = TokenStore()
        with self.assertRaises(TokenStateError):
            store.require_request_token()

        store.set_request_token(RequestToken("RT", "RS"))
        self.assertEqual(store.require_request_token(), RequestToken("RT", "RS"))

    def test_no_new_request_token_after_access_token(self):
        store = _authenticated_store()

        with self.assertRaises(TokenStateError):
            store.set_request_token(RequestTokenFactory())

        store.reset()
        self.assertEqual(store.state, TokenState.UNAUTHENTICATED)
        self.assertIsNone(store.access_token)
        store.set_request_token(RequestToken("RT", "RS"))
        self.assertEqual(store.state, TokenState.REQUEST_TOKEN_OBTAINED)


class FunctionsTestCase(TestCase):
    def setUp(self):
        self.signer = _fixed_signer()
        self.transport = Mock(spec=Transport)

    def test_parse_token_response(self):
        token = parse_token_response(
            b"oauth_token=RT&oauth_token_secret=RS&oauth_callback_confirmed=true",
            RequestToken,
            "request_token",
        )

        self.assertEqual(token, RequestToken("RT", "RS"))
        self.assertIsInstance(token, RequestToken)

    def test_parse_token_response_malformed(self):
        for content in (b"", b"<html>nope</html>", b"oauth_token=RT"):
            with self.assertRaises(HandshakeError) as cm:
                parse_token_response(content, RequestToken, "request_token")
            self.assertEqual(cm.exception.stage, "request_token")
            self.assertTrue(cm.exception.rejected)
            self.assertFalse(cm.exception.unreachable)

    def test_initiate(self):
        """
        initiate() should:
        * POST to the request token endpoint
        * sign without a token, with the callback
        * return the request token from the response
        """
        self.transport.post.return_value = _response(
            b"oauth_token=RT&oauth_token_secret=RS"
        )

        token = initiate(self.signer, self.transport, callback="https://cb/")

        self.assertEqual(token, RequestToken("RT", "RS"))
        args, kwargs = self.transport.post.call_args
        self.assertEqual(args[0], settings.REQUEST_TOKEN_URL)
        oauth_params = _authorization_params(kwargs["headers"])
        self.assertEqual(oauth_params["oauth_callback"], "https://cb/")
        self.assertEqual(oauth_params["oauth_consumer_key"], "K")
        self.assertNotIn("oauth_token", oauth_params)

    def test_initiate_unreachable(self):
        self.transport.post.side_effect = TransportError("Could not reach it")

        with self.assertRaises(HandshakeError) as cm:
            initiate(self.signer, self.transport)

        self.assertEqual(cm.exception.stage, "request_token")
        self.assertTrue(cm.exception.unreachable)
        self.assertFalse(cm.exception.rejected)
        self.assertIsInstance(cm.exception.cause, TransportError)

    def test_initiate_rejected(self):
        self.transport.post.side_effect = TransportError(
            "answered with HTTP 401", status_code=401
        )

        with self.assertRaises(HandshakeError) as cm:
            initiate(self.signer, self.transport)

        self.assertTrue(cm.exception.rejected)
        self.assertFalse(cm.exception.unreachable)

    def test_complete(self):
        self.transport.post.return_value = _response(
            b"oauth_token=AT&oauth_token_secret=AS"
        )

        token = complete(
            self.signer, self.transport, RequestToken("RT", "RS"), "V123"
        )

        self.assertEqual(token, AccessToken("AT", "AS"))
        self.assertIsInstance(token, AccessToken)
        args, kwargs = self.transport.post.call_args
        self.assertEqual(args[0], settings.ACCESS_TOKEN_URL)
        oauth_params = _authorization_params(kwargs["headers"])
        self.assertEqual(oauth_params["oauth_token"], "RT")
        self.assertEqual(oauth_params["oauth_verifier"], "V123")

    def test_complete_without_request_token_or_verifier(self):
        """
        complete() should fail before sending anything, and the error
        should not claim the server turned us down.
        """
        with self.assertRaises(HandshakeError) as cm:
            complete(self.signer, self.transport, None, "V123")
        self.assertIsInstance(cm.exception.cause, TokenStateError)
        self.assertFalse(cm.exception.rejected)
        self.assertFalse(cm.exception.unreachable)

        with self.assertRaises(HandshakeError) as cm:
            complete(self.signer, self.transport, RequestToken("RT", "RS"), "")
        self.assertIsInstance(cm.exception.cause, ValueError)
        self.assertFalse(cm.exception.rejected)

        self.transport.post.assert_not_called()

    def test_complete_with_invalid_request_token(self):
        for request_token in (("RT", ""), ("", "RS"), ("RT",)):
            with self.assertRaises(HandshakeError) as cm:
                complete(self.signer, self.transport, request_token, "V123")
            self.assertEqual(cm.exception.stage, "access_token")
            self.assertFalse(cm.exception.rejected)
        self.transport.post.assert_not_called()

    def test_authorize_url(self):
        self.assertEqual(
            authorize_url("RT", "https://cb/"),
            "https://www.urban-rivals.com/api/auth/authorize.php"
            "?oauth_token=RT&oauth_callback=https%3A%2F%2Fcb%2F",
        )

    def test_authorize_url_without_callback(self):
        url = authorize_url(RequestToken("RT", "RS"))

        self.assertEqual(
            url, "https://www.urban-rivals.com/api/auth/authorize.php?oauth_token=RT"
        )

    def test_authorize_url_keeps_base_query(self):
        url = authorize_url("RT", base_url="https://example.org/authorize?lang=fr")

        parsed = urlparse(url)
        self.assertEqual(parsed.path, "/authorize")
        self.assertEqual(
            parse_qs(parsed.query), {"lang": ["fr"], "oauth_token": ["RT"]}
        )


@patch("uroauth.handshaker.capture_exception")
class HandshakerTestCase(TestCase):
    def setUp(self):
        self.transport = Mock(spec=Transport)
        self.store = TokenStore()
        self.handshaker = Handshaker(_fixed_signer(), self.transport, self.store)

    def test_request_token(self, mock_capture):
        self.transport.post.return_value = _response(
            b"oauth_token=RT&oauth_token_secret=RS"
        )

        token = self.handshaker.request_token()

        self.assertEqual(token, RequestToken("RT", "RS"))
        self.assertEqual(self.store.request_token, token)
        self.assertEqual(self.store.state, TokenState.REQUEST_TOKEN_OBTAINED)
        oauth_params = _authorization_params(self.transport.post.call_args[1]["headers"])
        self.assertEqual(oauth_params["oauth_callback"], settings.UROAUTH_CALLBACK)
        mock_capture.assert_not_called()

    def test_request_token_failure_is_reported(self, mock_capture):
        self.transport.post.return_value = _response(b"error=nope")

        with self.assertRaises(HandshakeError) as cm:
            self.handshaker.request_token()

        mock_capture.assert_called_once_with(cm.exception)
        self.assertEqual(self.store.state, TokenState.UNAUTHENTICATED)

    def test_access_token_uses_stored_request_token(self, mock_capture):
        self.store.set_request_token(RequestToken("RT", "RS"))
        self.transport.post.return_value = _response(
            b"oauth_token=AT&oauth_token_secret=AS"
        )

        token = self.handshaker.access_token("V123")

        self.assertEqual(token, AccessToken("AT", "AS"))
        self.assertEqual(self.store.state, TokenState.ACCESS_TOKEN_OBTAINED)
        self.assertEqual(self.store.access_token, token)
        oauth_params = _authorization_params(self.transport.post.call_args[1]["headers"])
        self.assertEqual(oauth_params["oauth_token"], "RT")

    def test_access_token_with_external_request_token(self, mock_capture):
        self.transport.post.return_value = _response(
            b"oauth_token=AT&oauth_token_secret=AS"
        )

        token = self.handshaker.access_token(
            "V123", request_token=RequestToken("RTX", "RSX")
        )

        self.assertEqual(token, AccessToken("AT", "AS"))
        self.assertEqual(self.store.request_token, RequestToken("RTX", "RSX"))
        oauth_params = _authorization_params(self.transport.post.call_args[1]["headers"])
        self.assertEqual(oauth_params["oauth_token"], "RTX")

    def test_access_token_without_request_token(self, mock_capture):
        with self.assertRaises(HandshakeError) as cm:
            self.handshaker.access_token("V123")

        self.assertEqual(cm.exception.stage, "access_token")
        self.assertIsInstance(cm.exception.cause, TokenStateError)
        self.transport.post.assert_not_called()
        mock_capture.assert_called_once_with(cm.exception)

    def test_access_token_malformed_response(self, mock_capture):
        self.store.set_request_token(RequestToken("RT", "RS"))
        self.transport.post.return_value = _response(b"oauth_problem=token_rejected")

        with self.assertRaises(HandshakeError) as cm:
            self.handshaker.access_token("V123")

        self.assertEqual(cm.exception.stage, "access_token")
        self.assertTrue(cm.exception.rejected)
        self.assertEqual(self.store.state, TokenState.REQUEST_TOKEN_OBTAINED)

    def test_authorize_url(self, mock_capture):
        self.store.set_request_token(RequestToken("RT", "RS"))

        self.assertEqual(
            self.handshaker.authorize_url("https://cb/"),
            authorize_url("RT", "https://cb/"),
        )

    def test_authorize_url_without_request_token(self, mock_capture):
        with self.assertRaises(TokenStateError):
            self.handshaker.authorize_url()


class BatchQueryExecutorTestCase(TestCase):
    def setUp(self):
        self.transport = Mock(spec=Transport)
        self.store = _authenticated_store()
        self.executor = BatchQueryExecutor(_fixed_signer(), self.transport, self.store)

    def _respond(self, payload):
        self.transport.post.return_value = _response(json.dumps(payload).encode())

    def test_empty_batch(self):
        """An empty batch is rejected before anything is sent."""
        with self.assertRaises(InvalidBatchError):
            self.executor.execute([])
        self.transport.post.assert_not_called()

    def test_duplicate_call_names(self):
        with self.assertRaises(InvalidBatchError):
            self.executor.execute([CallSpec("urc.getClans"), CallSpec("urc.getClans")])
        self.transport.post.assert_not_called()

    def test_needs_access_token(self):
        executor = BatchQueryExecutor(_fixed_signer(), self.transport, TokenStore())

        with self.assertRaises(NotAuthenticatedError):
            executor.execute([CallSpecFactory()])
        self.transport.post.assert_not_called()

    def test_request_body(self):
        """
        execute() should POST one ``request`` field holding the calls, in
        order, as JSON, and sign it with the access token.
        """
        self._respond({})
        calls = [
            CallSpec("urc.getClans"),
            CallSpec(
                "general.getPlayer",
                params={"playerID": 42},
                items_filter=["name", "level"],
                context_filter={"player.name", "player.id"},
            ),
        ]

        self.executor.execute(calls)

        args, kwargs = self.transport.post.call_args
        self.assertEqual(args[0], settings.API_URL)
        self.assertEqual(list(kwargs["data"]), ["request"])
        self.assertEqual(
            json.loads(kwargs["data"]["request"]),
            [
                {"call": "urc.getClans", "params": {}},
                {
                    "call": "general.getPlayer",
                    "params": {"playerID": 42},
                    "contextFilter": ["player.id", "player.name"],
                    "itemsFilter": ["name", "level"],
                },
            ],
        )
        oauth_params = _authorization_params(kwargs["headers"])
        self.assertEqual(oauth_params["oauth_token"], "AT")

        # The request field is part of the signature.
        signer = _fixed_signer()
        expected = dict(
            signer.sign("POST", settings.API_URL, kwargs["data"], AccessToken("AT", "AS"))
        )
        self.assertEqual(oauth_params["oauth_signature"], expected["oauth_signature"])

    def test_encode_calls_is_compact(self):
        self.assertEqual(
            encode_calls([CallSpec("urc.getClans")]),
            '[{"call":"urc.getClans","params":{}}]',
        )

    def test_two_calls_two_results(self):
        """
        The result holds exactly the two calls, whatever their order in the
        request.
        """
        payload = {
            "urc.getClans": {"context": {"ok": True}, "items": {"1": "Clan A"}},
            "general.getPlayer": {"context": {"player": {"name": "Bob"}}},
        }
        expected = {
            "urc.getClans": QueryResult({"ok": True}, {"1": "Clan A"}),
            "general.getPlayer": QueryResult({"player": {"name": "Bob"}}, None),
        }
        calls = [CallSpec("urc.getClans"), CallSpec("general.getPlayer")]

        for ordered in (calls, list(reversed(calls))):
            self._respond(payload)
            results = self.executor.execute(ordered)
            self.assertEqual(results, expected)

    def test_items_absent(self):
        self._respond({"game.doAction": {"context": {"done": True}}})

        result = self.executor.single(CallSpec("game.doAction"))

        self.assertEqual(result.context, {"done": True})
        self.assertIsNone(result.items)

    def test_empty_php_arrays(self):
        self._respond({"urc.getClans": {"context": [], "items": []}})

        result = self.executor.single(CallSpec("urc.getClans"))

        self.assertEqual(result, QueryResult({}, {}))

    def test_unrequested_results_are_ignored(self):
        self._respond(
            {"urc.getClans": {"context": {}}, "other.call": {"context": {}}}
        )

        results = self.executor.execute([CallSpec("urc.getClans")])

        self.assertEqual(list(results), ["urc.getClans"])

    def test_invalid_json(self):
        self.transport.post.return_value = _response(b"<html>Fatal error</html>")

        with self.assertRaises(ProtocolError):
            self.executor.execute([CallSpecFactory()])

    def test_not_an_object(self):
        call = CallSpecFactory()
        for payload in ([{"context": {}}], "ok", {call.name: "nope"}):
            self._respond(payload)
            with self.assertRaises(ProtocolError):
                self.executor.execute([call])

    def test_concurrent_execute(self):
        """
        Once authenticated, several threads can run batches at the same
        time, each signed with the access token.
        """
        self._respond({"urc.getClans": {"context": {"ok": True}}})
        executor = BatchQueryExecutor(Signer(ConsumerToken("K", "S")), self.transport, self.store)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(
                pool.map(
                    lambda _: executor.execute([CallSpec("urc.getClans")]), range(32)
                )
            )

        self.assertEqual(
            results, [{"urc.getClans": QueryResult({"ok": True})}] * 32
        )
        self.assertEqual(self.transport.post.call_count, 32)
        nonces = set()
        for call in self.transport.post.call_args_list:
            oauth_params = _authorization_params(call[1]["headers"])
            self.assertEqual(oauth_params["oauth_token"], "AT")
            nonces.add(oauth_params["oauth_nonce"])
        self.assertEqual(len(nonces), 32)
        self.assertEqual(self.store.state, TokenState.ACCESS_TOKEN_OBTAINED)

    def test_transport_error_propagates(self):
        self.transport.post.side_effect = TransportError(
            "answered with HTTP 500", status_code=500
        )

        with self.assertRaises(TransportError):
            self.executor.execute([CallSpecFactory()])

    def test_single_missing_result(self):
        """single() raises rather than returning a default."""
        self._respond({"something.else": {"context": {}}})

        with self.assertRaises(MissingResultError) as cm:
            self.executor.single(CallSpec("urc.getClans"))

        self.assertEqual(cm.exception.name, "urc.getClans")

    def test_query(self):
        self._respond({"urc.getClans": {"context": {"ok": True}}})

        result = self.executor.query("urc.getClans", items_filter=["name"])

        self.assertEqual(result, QueryResult({"ok": True}))
        request = json.loads(self.transport.post.call_args[1]["data"]["request"])
        self.assertEqual(
            request, [{"call": "urc.getClans", "params": {}, "itemsFilter": ["name"]}]
        )


class ApiProxyTestCase(TestCase):
    def setUp(self):
        self.executor = Mock(spec=BatchQueryExecutor)
        self.proxy = ApiProxy(self.executor)

    def test_attribute_access(self):
        self.proxy.urc.getClans({"page": 1}, items_filter=["name"])

        self.executor.single.assert_called_once_with(
            CallSpec("urc.getClans", {"page": 1}, ["name"], ())
        )

    def test_call(self):
        result = self.proxy.call("general", "getPlayer", context_filter=["player"])

        self.executor.single.assert_called_once_with(
            CallSpec("general.getPlayer", None, (), ["player"])
        )
        self.assertEqual(result, self.executor.single.return_value)

    def test_bind(self):
        get_clans = self.proxy.bind("urc", "getClans")

        get_clans()
        get_clans()

        self.assertEqual(self.executor.single.call_count, 2)
        self.executor.single.assert_called_with(CallSpec("urc.getClans"))

    def test_private_names_are_not_proxied(self):
        with self.assertRaises(AttributeError):
            self.proxy._secret
        with self.assertRaises(AttributeError):
            self.proxy.urc.__wrapped__


class TransportTestCase(TestCase):
    def setUp(self):
        self.session = Mock()
        self.transport = Transport(session=self.session, timeout=5)

    def _real_response(self, status_code, content=b""):
        response = Response()
        response.status_code = status_code
        response._content = content
        response.url = API_URL
        return response

    def test_post(self):
        response = self._real_response(200, b"{}")
        self.session.post.return_value = response

        result = self.transport.post(
            API_URL, data={"request": "[]"}, headers={"Authorization": "OAuth x"}
        )

        self.assertIs(result, response)
        args, kwargs = self.session.post.call_args
        self.assertEqual(args[0], API_URL)
        self.assertEqual(kwargs["data"], {"request": "[]"})
        self.assertEqual(kwargs["timeout"], 5)
        self.assertEqual(kwargs["headers"]["Authorization"], "OAuth x")
        self.assertEqual(
            kwargs["headers"]["content-type"], "application/x-www-form-urlencoded"
        )
        self.assertTrue(kwargs["headers"]["User-Agent"].startswith("uroauth/"))

    def test_connection_error(self):
        self.session.post.side_effect = ConnectionError("refused")

        with self.assertRaises(TransportError) as cm:
            self.transport.post(API_URL)

        self.assertIsNone(cm.exception.status_code)

    def test_non_2xx_status(self):
        for status_code in (302, 401, 500):
            self.session.post.return_value = self._real_response(status_code, b"{}")

            with self.assertRaises(TransportError) as cm:
                self.transport.post(API_URL)

            self.assertEqual(cm.exception.status_code, status_code)
            self.assertIsNotNone(cm.exception.response)

    def test_default_timeout(self):
        self.assertEqual(
            Transport(session=self.session).timeout, settings.UROAUTH_REQUEST_TIMEOUT
        )

    def test_close(self):
        with Transport(session=self.session):
            pass

        self.session.close.assert_called_once_with()


class SettingsTestCase(TestCase):
    @patch("logging.config.dictConfig")
    def test_configure_logging(self, mock_dict_config):
        settings.configure_logging("DEBUG")

        config = mock_dict_config.call_args[0][0]
        self.assertEqual(config["loggers"]["uroauth"]["level"], "DEBUG")
        self.assertEqual(config["loggers"]["uroauth"]["handlers"], ["console"])
        # The module level configuration is left alone.
        self.assertEqual(
            settings.LOGGING["loggers"]["uroauth"]["level"], settings.UROAUTH_LOG_LEVEL
        )


@patch("uroauth.handshaker.capture_exception")
class UROAuthTestCase(TestCase):
    def _client(self, transport):
        return UROAuth(
            key="K",
            secret="S",
            transport=transport,
            nonce_source=lambda: FIXED_NONCE,
            timestamp_source=lambda: FIXED_TIMESTAMP,
        )

    def test_end_to_end(self, mock_capture):
        """
        Request token, authorize URL, access token and a first query, against
        a stubbed server.
        """
        transport = Mock(spec=Transport)
        transport.post.side_effect = [
            _response(b"oauth_token=RT&oauth_token_secret=RS"),
            _response(b"oauth_token=AT&oauth_token_secret=AS"),
            _response(
                b'{"urc.getClans": {"context": {"ok": true}, "items": {"1": "Clan A"}}}'
            ),
        ]
        client = self._client(transport)

        self.assertEqual(client.request_token(), RequestToken("RT", "RS"))
        self.assertEqual(client.state, TokenState.REQUEST_TOKEN_OBTAINED)

        self.assertEqual(
            client.authorize_url("https://cb/"),
            "https://www.urban-rivals.com/api/auth/authorize.php"
            "?oauth_token=RT&oauth_callback=https%3A%2F%2Fcb%2F",
        )

        self.assertEqual(client.access_token("V123"), AccessToken("AT", "AS"))
        self.assertEqual(client.state, TokenState.ACCESS_TOKEN_OBTAINED)
        self.assertEqual(client.access_token_pair, AccessToken("AT", "AS"))

        results = client.execute([CallSpec("urc.getClans", params={})])

        self.assertEqual(
            results,
            {"urc.getClans": QueryResult({"ok": True}, {"1": "Clan A"})},
        )
        urls = [call[0][0] for call in transport.post.call_args_list]
        self.assertEqual(
            urls,
            [settings.REQUEST_TOKEN_URL, settings.ACCESS_TOKEN_URL, settings.API_URL],
        )
        mock_capture.assert_not_called()

    def test_query_before_handshake(self, mock_capture):
        transport = Mock(spec=Transport)
        client = self._client(transport)

        with self.assertRaises(NotAuthenticatedError):
            client.query("urc.getClans")
        transport.post.assert_not_called()

    def test_multiple_queries_accepts_loose_calls(self, mock_capture):
        transport = Mock(spec=Transport)
        transport.post.return_value = _response(b"{}")
        client = self._client(transport)
        client.token_store.set_access_token(
            AccessTokenFactory(), request_token=RequestTokenFactory()
        )

        client.multiple_queries(
            "urc.getClans",
            ("general.getPlayer", {"playerID": 1}),
            {"call": "game.getDeck", "itemsFilter": ["id"]},
        )

        request = json.loads(transport.post.call_args[1]["data"]["request"])
        self.assertEqual(
            request,
            [
                {"call": "urc.getClans", "params": {}},
                {"call": "general.getPlayer", "params": {"playerID": 1}},
                {"call": "game.getDeck", "params": {}, "itemsFilter": ["id"]},
            ],
        )

    def test_api_proxy(self, mock_capture):
        transport = Mock(spec=Transport)
        transport.post.return_value = _response(
            b'{"urc.getClans": {"context": {"ok": true}}}'
        )
        client = self._client(transport)
        client.token_store.set_access_token(
            AccessToken("AT", "AS"), request_token=RequestToken("RT", "RS")
        )

        self.assertEqual(client.api.urc.getClans(), QueryResult({"ok": True}))
        self.assertEqual(client.call("urc", "getClans"), QueryResult({"ok": True}))

    def test_settings_defaults(self, mock_capture):
        consumer = ConsumerTokenFactory()
        with patch.object(settings, "UROAUTH_CONSUMER_KEY", consumer.key), patch.object(
            settings, "UROAUTH_CONSUMER_SECRET", consumer.secret
        ):
            client = UROAuth(transport=Mock(spec=Transport))

        self.assertEqual(client.consumer.key, consumer.key)
        self.assertEqual(client.consumer.secret, consumer.secret)
        self.assertEqual(client.consumer.signature_method, "HMAC-SHA1")

    def test_missing_consumer_key(self, mock_capture):
        with patch.object(settings, "UROAUTH_CONSUMER_KEY", None):
            with self.assertRaises(SigningError):
                UROAuth(secret="S", transport=Mock(spec=Transport))
