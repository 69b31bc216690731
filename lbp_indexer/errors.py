# ---------------- error taxonomy ----------------
class IndexerError(Exception):
    pass

class TransportError(IndexerError):
    """Explorer, receipt or contract-read endpoint unreachable or erroring."""

class SchemaError(IndexerError):
    """A response is missing the fields we rely on."""

class DecodeError(IndexerError):
    """A log entry matches none of the known events."""

class PersistenceError(IndexerError):
    """The output log cannot be opened, appended or synced."""

class ResolutionError(IndexerError):
    """Token decimals could not be resolved for the target contract."""
