"""Project-wide constants (protocol framing, hashing, storage layout)."""

DEFAULT_PROTOCOL_VERSION: str = "1.0"
LINE_TERMINATOR: str = "\r\n"  # CRLF closes every header line

HEADER_MIN_TOKENS: int = 4
HEADER_MAX_TOKENS: int = 6

FILE_ID_HASH_ALGORITHM: str = "sha256"
FILE_ID_HEX_LENGTH: int = 64

# Chunk bodies are read back with a single-byte charset so any byte survives
CHUNK_ENCODING: str = "latin-1"
HEADER_ENCODING: str = "ascii"

STORAGE_BASE_DIR: str = "peer"
CHUNKS_DIR_NAME: str = "chunks"
FILES_DIR_NAME: str = "files"
CHUNK_NAME_SEPARATOR: str = "_"

DEFAULT_PEER_ID: str = "1"
DEFAULT_LOCK_STRIPES: int = 64
