class LedgerError(Exception):
    """Raised when the entity store cannot be read or written."""
