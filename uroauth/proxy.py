"""
Attribute access for API calls, so that::

    client.api.urc.getClans(items_filter=["name"])

runs the ``urc.getClans`` call.  Call names are not checked; whatever
``group.method`` you spell is sent as is.  Groups whose name clashes with
:meth:`ApiProxy.bind` or :meth:`ApiProxy.call` have to go through
:meth:`ApiProxy.call`.
"""
import functools

from .queries import CallSpec


def _call(executor, name, params=None, items_filter=(), context_filter=()):
    return executor.single(
        CallSpec(
            name, params=params, items_filter=items_filter, context_filter=context_filter
        )
    )


class CallGroup(object):
    """The calls of one group, e.g. ``urc``."""

    def __init__(self, executor, group):
        self._executor = executor
        self._group = group

    def __getattr__(self, method):
        if method.startswith("_"):
            raise AttributeError(method)
        return functools.partial(
            _call, self._executor, "{0}.{1}".format(self._group, method)
        )

    def __repr__(self):
        return "<CallGroup {0}>".format(self._group)


class ApiProxy(object):
    def __init__(self, executor):
        self._executor = executor

    def __getattr__(self, group):
        if group.startswith("_"):
            raise AttributeError(group)
        return CallGroup(self._executor, group)

    def bind(self, group, method):
        """Return a callable running ``group.method``."""
        return functools.partial(
            _call, self._executor, "{0}.{1}".format(group, method)
        )

    def call(self, group, method, params=None, items_filter=(), context_filter=()):
        return self.bind(group, method)(
            params=params, items_filter=items_filter, context_filter=context_filter
        )
