class StorageReaderError(ValueError):
    """Base class for errors raised while decoding contract storage."""


class InvalidNumeric(StorageReaderError):
    """Input could not be parsed as a non-negative integer."""


class InvalidBytes(StorageReaderError):
    """Input could not be interpreted as a byte sequence."""


class InvalidEncoding(StorageReaderError):
    """Stored bytes are not valid UTF-8 for a string-typed field."""


class LayoutError(StorageReaderError):
    """Storage layout document is missing required fields or malformed."""
