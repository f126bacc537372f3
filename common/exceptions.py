"""Exception classes shared by the chunk store and the content store."""


class ContentStoreException(Exception):
    """
    Base exception class for all content store errors.
    """
    pass


class InvalidContentIdError(ContentStoreException):
    """
    Raised when a content id could escape the storage root or is otherwise unusable.
    """
    pass


class ChunkWriteError(ContentStoreException):
    """
    Raised when a chunk could not be durably written.
    """
    pass


class StorageUnavailableError(ContentStoreException):
    """
    Raised when the storage root or metadata database cannot be used at all.
    """
    pass


class SinkClosedError(ContentStoreException):
    """
    Raised by a download sink to signal the receiver went away.
    """
    pass


class ContentNotFoundError(ContentStoreException):
    """
    Raised at the HTTP boundary when a requested content does not exist.
    """
    pass


class NotALargeFileError(ContentStoreException):
    """
    Raised when the streaming download path is asked for content sent inline.
    """
    pass


class ContentIncompleteError(ContentStoreException):
    """
    Raised when a download is requested before every chunk has been stored.
    """
    pass
