# -*- coding: utf-8 -*-
import factory

from uroauth.queries import CallSpec, QueryResult
from uroauth.tokens import AccessToken, ConsumerToken, RequestToken


class ConsumerTokenFactory(factory.Factory):
    class Meta:
        model = ConsumerToken

    key = factory.Faker("md5")
    secret = factory.Faker("sha1")


class RequestTokenFactory(factory.Factory):
    class Meta:
        model = RequestToken

    token = factory.Faker("md5")
    secret = factory.Faker("sha1")


class AccessTokenFactory(factory.Factory):
    class Meta:
        model = AccessToken

    token = factory.Faker("md5")
    secret = factory.Faker("sha1")


class CallSpecFactory(factory.Factory):
    class Meta:
        model = CallSpec

    # Names must be unique within a batch.
    name = factory.Sequence(lambda n: "urc.call{0}".format(n))
    params = factory.LazyFunction(dict)


class QueryResultFactory(factory.Factory):
    class Meta:
        model = QueryResult

    context = factory.LazyFunction(lambda: {"ok": True})
    items = factory.LazyFunction(dict)
