__all__ = (
    "ResolverError",
    "ConfigurationError",
    "FetchError",
    "TransportError",
    "ProtocolError",
    "MissingLocationError",
    "InvalidLocationError",
    "StorageError",
    "CorruptRecordError",
)


class ResolverError(Exception): ...


class ConfigurationError(ResolverError): ...


class FetchError(ResolverError): ...


class TransportError(FetchError): ...


class ProtocolError(FetchError): ...


class MissingLocationError(ProtocolError): ...


class InvalidLocationError(ProtocolError): ...


class StorageError(ResolverError): ...


class CorruptRecordError(StorageError): ...
