"""Data ingestion layer - warning feed retrieval and decoding."""

from warnung_tracker.ingestor.client import (
    FeedClient,
    FeedStatusError,
    FeedTransportError,
    FetchError,
    InvalidURLError,
)
from warnung_tracker.ingestor.models import (
    Area,
    DecodeError,
    GeoCode,
    Info,
    Parameter,
    WarningMessage,
    decode_warnings,
)

__all__ = [
    # Client
    "FeedClient",
    "FeedStatusError",
    "FeedTransportError",
    "FetchError",
    "InvalidURLError",
    # Models
    "Area",
    "DecodeError",
    "GeoCode",
    "Info",
    "Parameter",
    "WarningMessage",
    "decode_warnings",
]
