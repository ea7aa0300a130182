"""
Settings for uroauth.

Values come from environment variables, so a deployment can configure the
client without code changes; :class:`~uroauth.client.UROAuth` falls back on
them for anything its caller does not pass explicitly.
"""
import logging.config
import os

# ENDPOINTS
# ------------------------------------------------------------------------------

REQUEST_TOKEN_URL = os.environ.get(
    "UROAUTH_REQUEST_TOKEN_URL",
    "https://www.urban-rivals.com/api/auth/request_token.php",
)
ACCESS_TOKEN_URL = os.environ.get(
    "UROAUTH_ACCESS_TOKEN_URL",
    "https://www.urban-rivals.com/api/auth/access_token.php",
)
AUTHORIZE_URL = os.environ.get(
    "UROAUTH_AUTHORIZE_URL", "https://www.urban-rivals.com/api/auth/authorize.php"
)
API_URL = os.environ.get("UROAUTH_API_URL", "https://www.urban-rivals.com/api/")

# CONSUMER CONFIGURATION
# ------------------------------------------------------------------------------

UROAUTH_CONSUMER_KEY = os.environ.get("UROAUTH_CONSUMER_KEY", None)
UROAUTH_CONSUMER_SECRET = os.environ.get("UROAUTH_CONSUMER_SECRET", None)
UROAUTH_SIGNATURE_METHOD = os.environ.get("UROAUTH_SIGNATURE_METHOD", "HMAC-SHA1")

# Where the authorize page sends the user once they approved us. "oob" means
# the verifier is shown to the user instead.
UROAUTH_CALLBACK = os.environ.get("UROAUTH_CALLBACK", "oob")

# TRANSPORT CONFIGURATION
# ------------------------------------------------------------------------------

UROAUTH_REQUEST_TIMEOUT = float(os.environ.get("UROAUTH_REQUEST_TIMEOUT", 30))
USER_AGENT = os.environ.get("UROAUTH_USER_AGENT", "uroauth/{}")

# LOGGING CONFIGURATION
# ------------------------------------------------------------------------------

UROAUTH_LOG_LEVEL = os.environ.get("UROAUTH_LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "uroauth": {"format": "[%(asctime)s] %(levelname)s %(name)s: %(message)s"}
    },
    "handlers": {
        "console": {
            "level": "DEBUG",
            "class": "logging.StreamHandler",
            "formatter": "uroauth",
        },
    },
    "loggers": {
        "uroauth": {
            "handlers": ["console"],
            "level": UROAUTH_LOG_LEVEL,
            "propagate": False,
        },
    },
}


def configure_logging(level=None):
    """
    Send uroauth's log records to the console.  Applications with their own
    logging setup should leave this alone and configure the ``uroauth``
    logger themselves.
    """
    config = dict(LOGGING)
    if level is not None:
        config["loggers"] = {"uroauth": dict(LOGGING["loggers"]["uroauth"], level=level)}
    logging.config.dictConfig(config)
