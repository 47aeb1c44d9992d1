"""
GKE Events Notifier

Relays GKE cluster notifications delivered by a Pub/Sub push subscription
to a Slack incoming webhook.
"""

__version__ = "0.16.0"
__license__ = "MIT"

from .config.settings import Config, load_config
from .server import NotifierServer, ServerState
from .slack.delivery import SlackDelivery

__all__ = [
    "NotifierServer",
    "ServerState",
    "SlackDelivery",
    "Config",
    "load_config",
    "__version__",
    "__license__",
]
