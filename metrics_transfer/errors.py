class MetricsTransferError(RuntimeError):
    pass


class ConfigurationError(MetricsTransferError):
    pass


class DatabaseConnectionError(MetricsTransferError):
    pass


class SourceConnectionError(DatabaseConnectionError):
    pass


class DestinationConnectionError(DatabaseConnectionError):
    pass


class QueryError(MetricsTransferError):
    pass


class WriteError(MetricsTransferError):
    pass


class DuplicateRowError(WriteError):
    pass
