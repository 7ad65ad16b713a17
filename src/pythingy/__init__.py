"""pythingy - Async Python client for Thingy:91 telemetry over MQTT and InfluxDB."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pythingy")
except PackageNotFoundError:
    __version__ = "0+local"
from pythingy._topics import TopicAddress
from pythingy.aggregator import RowStream
from pythingy.client import ThingyClient
from pythingy.config import ThingyConfig
from pythingy.correlator import EventCorrelator
from pythingy.encoding import PointEncoder
from pythingy.exceptions import (
    RangeConfigurationError,
    ThingyConfigError,
    ThingyConnectionError,
    ThingyDecodeError,
    ThingyError,
    ThingyPublishError,
    ThingyQueryError,
    ThingyTimeoutError,
)
from pythingy.models import (
    Aggregation,
    ButtonTimer,
    CommandAck,
    MessageType,
    Point,
    QuerySpec,
    RetentionPolicy,
    Row,
    TelemetryMessage,
)
from pythingy.query import basic_range_query, latest_rows_query, statistical_query
from pythingy.rating import linear_rating, s_curve_rating
from pythingy.router import MessageRouter

__all__ = [
    "__version__",
    "Aggregation",
    "ButtonTimer",
    "CommandAck",
    "EventCorrelator",
    "MessageRouter",
    "MessageType",
    "Point",
    "PointEncoder",
    "QuerySpec",
    "RangeConfigurationError",
    "RetentionPolicy",
    "Row",
    "RowStream",
    "TelemetryMessage",
    "ThingyClient",
    "ThingyConfig",
    "ThingyConfigError",
    "ThingyConnectionError",
    "ThingyDecodeError",
    "ThingyError",
    "ThingyPublishError",
    "ThingyQueryError",
    "ThingyTimeoutError",
    "TopicAddress",
    "basic_range_query",
    "latest_rows_query",
    "linear_rating",
    "s_curve_rating",
    "statistical_query",
]
