"""Custom exception classes shared by the peer components."""


class BackupServiceError(Exception):
    """
    Base exception class for all backup-service errors.
    """
    pass


class InvalidHeaderError(BackupServiceError):
    """
    Raised when a protocol header is malformed: wrong token count, unknown
    message type, bad integer field or a missing required field.
    """
    pass


class UnsupportedHashFunctionError(BackupServiceError):
    """
    Raised when the file identifier digest is not available in this runtime.
    """
    pass


class StorageIOError(BackupServiceError):
    """
    Raised when a storage directory or chunk file cannot be created, read or written.
    """
    pass


class ChunkNotFoundError(StorageIOError):
    """
    Raised when a requested chunk is not stored on this peer.
    """
    pass


class InvalidChunkKeyError(BackupServiceError):
    """
    Raised when a file ID or chunk number cannot name a chunk file.
    """
    pass
