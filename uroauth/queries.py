"""
Batched queries against the Urban Rivals API.

Any number of calls travel in a single signed POST: the calls are encoded as
a JSON array in the ``request`` form field, and the server answers with one
JSON object holding every result under its call name.
"""
import json
import logging
from collections import namedtuple

from . import settings
from .errors import InvalidBatchError, MissingResultError, ProtocolError

logger = logging.getLogger(__name__)


class CallSpec(
    namedtuple(
        "CallSpec",
        ["name", "params", "items_filter", "context_filter"],
        defaults=[None, (), ()],
    )
):
    """
    One remote call.

    :Parameters:
        name : `str`
            Dotted call name, e.g. ``"urc.getClans"``
        params : `dict`
            Call parameters. Defaults to no parameters.
        items_filter : iterable of `str`
            The only ``items`` fields the server should return.  Empty means
            all of them.
        context_filter : iterable of `str`
            Same, for the ``context`` fields.
    """

    __slots__ = ()

    def to_json(self):
        call = {"call": self.name, "params": dict(self.params or {})}
        if self.context_filter:
            call["contextFilter"] = _filter_list(self.context_filter)
        if self.items_filter:
            call["itemsFilter"] = _filter_list(self.items_filter)
        return call


QueryResult = namedtuple("QueryResult", ["context", "items"], defaults=[None])
"""
The result of one call.

:Parameters:
    context : `dict`
        Reply context
    items : `dict` | `None`
        Reply items; ``None`` for calls that return none (pure actions).
"""


def _filter_list(fields):
    if isinstance(fields, str):
        return [fields]
    if isinstance(fields, (set, frozenset)):
        return sorted(fields)
    return list(fields)


def encode_calls(calls):
    """Encode calls as the compact JSON array sent in the ``request`` field."""
    return json.dumps([call.to_json() for call in calls], separators=(",", ":"))


def decode_results(content, names):
    """
    Parse a batch response and pick out the results of ``names``.

    Results for calls we did not make are dropped.  A requested name missing
    from the response is not an error here; :meth:`BatchQueryExecutor.single`
    decides what to do about it.
    """
    try:
        payload = json.loads(content)
    except ValueError as e:
        raise ProtocolError("Response is not valid JSON: {0}".format(e)) from e

    if not isinstance(payload, dict):
        raise ProtocolError(
            "Expected a JSON object keyed by call name, got {0}.".format(
                type(payload).__name__
            )
        )

    results = {}
    for name, value in payload.items():
        if name not in names:
            logger.debug("Ignoring result for unrequested call {0}.".format(name))
            continue
        results[name] = _parse_result(name, value)
    return results


def _parse_result(name, value):
    if not isinstance(value, dict):
        raise ProtocolError("Result for {0!r} is not an object.".format(name))

    context = value.get("context", {})
    items = value.get("items")
    # PHP encodes an empty associative array as [].
    if context == []:
        context = {}
    if items == []:
        items = {}
    if not isinstance(context, dict):
        raise ProtocolError("Context of {0!r} is not an object.".format(name))
    if items is not None and not isinstance(items, dict):
        raise ProtocolError("Items of {0!r} are not an object.".format(name))
    return QueryResult(context=context, items=items)


class BatchQueryExecutor(object):
    """
    Sends batches of :class:`CallSpec` signed with the stored access token.

    :Parameters:
        signer : :class:`~uroauth.signer.Signer`
        transport : :class:`~uroauth.transport.Transport`
        token_store : :class:`~uroauth.tokens.TokenStore`
            Must hold an access token by the time a batch is executed
        url : `str`
            Query endpoint. Defaults to ``settings.API_URL``.
    """

    def __init__(self, signer, transport, token_store, url=None):
        self.signer = signer
        self.transport = transport
        self.token_store = token_store
        self.url = settings.API_URL if url is None else url

    def execute(self, calls):
        """
        Run several calls in one request.

        :Parameters:
            calls : sequence of :class:`CallSpec`
                At least one call, no name twice

        :Returns:
            A `dict` mapping call names to :class:`QueryResult`
        """
        calls = list(calls)
        if not calls:
            raise InvalidBatchError("A batch needs at least one call.")

        names = [call.name for call in calls]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise InvalidBatchError(
                "Results are keyed by call name, so a batch cannot repeat "
                "{0}.".format(", ".join(duplicates))
            )

        access_token = self.token_store.require_access_token()

        body = {"request": encode_calls(calls)}
        oauth_params = self.signer.sign("POST", self.url, body, access_token)
        headers = self.signer.authorization_header(oauth_params)

        logger.debug("Sending a batch of {0} call(s).".format(len(calls)))
        response = self.transport.post(self.url, data=body, headers=headers)
        return decode_results(response.content, set(names))

    def single(self, call):
        """Run one call and return its :class:`QueryResult`."""
        results = self.execute([call])
        try:
            return results[call.name]
        except KeyError:
            raise MissingResultError(call.name) from None

    def query(self, name, params=None, items_filter=(), context_filter=()):
        return self.single(
            CallSpec(
                name,
                params=params,
                items_filter=items_filter,
                context_filter=context_filter,
            )
        )
