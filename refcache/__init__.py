from refcache._core._spec import FreshnessWindows, ResolverOptions
from refcache._core.models import (
    CacheRecord as CacheRecord,
    Fetched as Fetched,
    NotHandled as NotHandled,
    NotResolvable as NotResolvable,
    Resolution as Resolution,
    ResolvedEntity as ResolvedEntity,
    Revalidated as Revalidated,
    StatusKind as StatusKind,
)
from refcache._diagnostics import (
    BaseDiagnosticSink,
    Diagnostic,
    DiagnosticKind,
    LoggingSink,
    MemorySink,
)
from refcache._exceptions import (
    ConfigurationError,
    CorruptRecordError,
    FetchError,
    InvalidLocationError,
    MissingLocationError,
    ProtocolError,
    ResolverError,
    StorageError,
    TransportError,
)
from refcache._serializers import BaseSerializer, LegacySerializer, ZipSerializer
from refcache._sync._fetcher import Fetcher
from refcache._sync._mock import MockTransport
from refcache._sync._resolver import EntityResolver
from refcache._sync._storages import BaseStorage, FileStorage, InMemoryStorage
from refcache._utils import BaseClock, Clock, generate_key

__version__ = "0.1.0"

__all__ = (
    # Resolver
    "EntityResolver",
    "Fetcher",
    ## Results
    "Resolution",
    "ResolvedEntity",
    "NotHandled",
    "NotResolvable",
    "Fetched",
    "Revalidated",
    ## Records
    "CacheRecord",
    "StatusKind",
    # Configuration
    "ResolverOptions",
    "FreshnessWindows",
    # Storages
    "BaseStorage",
    "FileStorage",
    "InMemoryStorage",
    # Serializers
    "BaseSerializer",
    "ZipSerializer",
    "LegacySerializer",
    # Diagnostics
    "BaseDiagnosticSink",
    "Diagnostic",
    "DiagnosticKind",
    "LoggingSink",
    "MemorySink",
    # Exceptions
    "ResolverError",
    "ConfigurationError",
    "FetchError",
    "TransportError",
    "ProtocolError",
    "MissingLocationError",
    "InvalidLocationError",
    "StorageError",
    "CorruptRecordError",
    # Utilities
    "BaseClock",
    "Clock",
    "generate_key",
    # Testing
    "MockTransport",
)
