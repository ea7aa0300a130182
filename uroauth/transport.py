"""
HTTP transport that sends signed requests to the Urban Rivals API.
"""
import logging

from requests import Session
from requests.exceptions import HTTPError, RequestException
from requests.structures import CaseInsensitiveDict

from . import settings
from .errors import TransportError
from .version import __version__

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class Transport(object):
    """
    A thin wrapper around a :class:`requests.Session`.  Connection pooling,
    TLS verification and redirects are left to requests; this class only
    applies the timeout and turns failures into :class:`TransportError`.
    """

    def __init__(self, session=None, timeout=None, user_agent=None):
        self.session = Session() if session is None else session
        self.timeout = settings.UROAUTH_REQUEST_TIMEOUT if timeout is None else timeout
        self.headers = CaseInsensitiveDict()
        self.headers["User-Agent"] = (
            settings.USER_AGENT.format(__version__) if user_agent is None else user_agent
        )

    def post(self, url, data=None, headers=None):
        """
        POST form-encoded ``data`` to ``url``.

        :Returns:
            The :class:`requests.Response`, always with a 2xx status.
        :Raises:
            :class:`~uroauth.errors.TransportError` when the request fails
            or the status is not 2xx.
        """
        request_headers = CaseInsensitiveDict(self.headers)
        request_headers["Content-Type"] = FORM_CONTENT_TYPE
        if headers:
            request_headers.update(headers)

        try:
            response = self.session.post(
                url, data=data or {}, headers=request_headers, timeout=self.timeout
            )
        except RequestException as e:
            logger.warning("Could not reach {url}: {error}".format(url=url, error=e))
            raise TransportError(
                "Could not reach {0}: {1}".format(url, e)
            ) from e

        try:
            response.raise_for_status()
        except HTTPError as e:
            logger.warning(
                "{url} answered with HTTP {status}".format(
                    url=url, status=response.status_code
                )
            )
            raise TransportError(
                "{0} answered with HTTP {1}".format(url, response.status_code),
                status_code=response.status_code,
                response=response,
            ) from e

        # raise_for_status lets 1xx and 3xx through.
        if not 200 <= response.status_code < 300:
            raise TransportError(
                "{0} answered with HTTP {1}".format(url, response.status_code),
                status_code=response.status_code,
                response=response,
            )
        return response

    def close(self):
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
