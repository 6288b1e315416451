"""Peer-to-peer protocol header: message types, parsing and building of wire lines."""

import hashlib
import operator
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

from common.constants import (
    CHUNK_ENCODING,
    FILE_ID_HASH_ALGORITHM,
    HEADER_ENCODING,
    HEADER_MAX_TOKENS,
    HEADER_MIN_TOKENS,
    LINE_TERMINATOR,
)
from common.exceptions import InvalidHeaderError, UnsupportedHashFunctionError

CHUNK_NO_FIELD = "chunk_no"
REPLICATION_DEG_FIELD = "replication_deg"

MESSAGE_SEPARATOR = (LINE_TERMINATOR * 2).encode(HEADER_ENCODING)

# Plain ASCII decimal, optionally negative; no sign "+", no underscores
WIRE_INT_PATTERN = re.compile(r"-?[0-9]+")


class MessageType(Enum):
    """Protocol message kinds, each bound to its wire literal."""

    PUTCHUNK = "PUTCHUNK"
    STORED = "STORED"
    GETCHUNK = "GETCHUNK"
    CHUNK = "CHUNK"
    DELETE = "DELETE"
    REMOVED = "REMOVED"

    @property
    def literal(self) -> str:
        return self.value

    @property
    def trailing_fields(self) -> Tuple[str, ...]:
        """Names of the fields written after the file ID, in wire order."""
        return _TRAILING_FIELDS[self]

    @classmethod
    def from_literal(cls, literal: str) -> 'MessageType':
        """
        Look up a message type by its wire literal.

        Raises:
            InvalidHeaderError: If the literal names no known message type
        """
        try:
            return cls(literal)
        except ValueError:
            raise InvalidHeaderError(f"Unknown message type: {literal!r}") from None


_TRAILING_FIELDS = {
    MessageType.PUTCHUNK: (CHUNK_NO_FIELD, REPLICATION_DEG_FIELD),
    MessageType.STORED: (CHUNK_NO_FIELD,),
    MessageType.GETCHUNK: (CHUNK_NO_FIELD,),
    MessageType.CHUNK: (CHUNK_NO_FIELD,),
    MessageType.DELETE: (),
    MessageType.REMOVED: (CHUNK_NO_FIELD,),
}


@dataclass
class Header:
    """
    Structured protocol header.

    file_id holds the raw identifier when the header is built locally and
    the hex digest when it was parsed from the wire.
    """
    version: str
    message_type: MessageType
    sender_id: str
    file_id: str
    chunk_no: Optional[int] = None
    replication_deg: Optional[int] = None
    other: List[str] = field(default_factory=list)

    def to_wire(self) -> str:
        """Serialize to a terminated header line."""
        return build_header(
            self.version,
            self.message_type,
            self.sender_id,
            self.file_id,
            self.chunk_no,
            self.replication_deg
        )

    @classmethod
    def from_tokens(cls, tokens: Sequence[str]) -> 'Header':
        """Deserialize from whitespace-delimited header tokens."""
        return parse_header(tokens)


def encode_file_id(raw_file_id: str) -> str:
    """
    Hash a file identifier into its wire form.

    Args:
        raw_file_id: The true file identifier

    Returns:
        Lowercase hexadecimal SHA-256 digest (64 characters)

    Raises:
        UnsupportedHashFunctionError: If SHA-256 is unavailable
    """
    try:
        digest = hashlib.new(FILE_ID_HASH_ALGORITHM)
    except ValueError as e:
        raise UnsupportedHashFunctionError(
            f"Hash function {FILE_ID_HASH_ALGORITHM} is not available"
        ) from e
    digest.update(raw_file_id.encode('utf-8'))
    return digest.hexdigest()


def _parse_int(token: str, field_name: str) -> int:
    if not WIRE_INT_PATTERN.fullmatch(token):
        raise InvalidHeaderError(f"Field {field_name} is not numeric: {token!r}")
    return int(token)


def _field_value(value, field_name: str) -> int:
    if isinstance(value, bool):
        raise InvalidHeaderError(f"Field {field_name} must be an integer: {value!r}")
    try:
        return operator.index(value)
    except TypeError:
        raise InvalidHeaderError(f"Field {field_name} must be an integer: {value!r}") from None


def parse_header(tokens: Sequence[str]) -> Header:
    """
    Build a Header from the tokens of a received header line.

    Args:
        tokens: Whitespace-delimited header tokens, in wire order

    Returns:
        Parsed Header; file_id is the hex digest as sent

    Raises:
        InvalidHeaderError: On a bad token count, unknown message type, a
            field count that does not match the message type or a
            non-numeric chunk number / replication degree
    """
    tokens = list(tokens)
    if not HEADER_MIN_TOKENS <= len(tokens) <= HEADER_MAX_TOKENS:
        raise InvalidHeaderError(
            f"Invalid message header: expected {HEADER_MIN_TOKENS}-{HEADER_MAX_TOKENS} "
            f"tokens, got {len(tokens)}"
        )

    version, type_literal, sender_id, file_id = tokens[:HEADER_MIN_TOKENS]
    message_type = MessageType.from_literal(type_literal)

    expected = HEADER_MIN_TOKENS + len(message_type.trailing_fields)
    if len(tokens) != expected:
        raise InvalidHeaderError(
            f"{message_type.literal} header takes {expected} tokens, got {len(tokens)}"
        )

    values = {CHUNK_NO_FIELD: None, REPLICATION_DEG_FIELD: None}
    for field_name, token in zip(message_type.trailing_fields, tokens[HEADER_MIN_TOKENS:]):
        values[field_name] = _parse_int(token, field_name)
    chunk_no = values[CHUNK_NO_FIELD]
    replication_deg = values[REPLICATION_DEG_FIELD]

    return Header(
        version=version,
        message_type=message_type,
        sender_id=sender_id,
        file_id=file_id,
        chunk_no=chunk_no,
        replication_deg=replication_deg,
        other=tokens[HEADER_MAX_TOKENS:]
    )


def _check_token(value: str, field_name: str) -> str:
    if not value or not value.isascii() or any(ch.isspace() for ch in value):
        raise InvalidHeaderError(
            f"Field {field_name} must be a non-empty {HEADER_ENCODING} token: {value!r}"
        )
    return value


def build_header(
    version: str,
    message_type: MessageType,
    sender_id: str,
    raw_file_id: str,
    chunk_no: Optional[int] = None,
    replication_deg: Optional[int] = None
) -> str:
    """
    Build a terminated header line for peer-to-peer communication.

    Args:
        version: Protocol version
        message_type: Kind of message being sent
        sender_id: ID of the sending peer
        raw_file_id: True file identifier; hashed before it goes on the wire
        chunk_no: Chunk number (every type except DELETE)
        replication_deg: Desired replication degree (PUTCHUNK only)

    Returns:
        Header line ending in CRLF

    Raises:
        InvalidHeaderError: If a field required by message_type is missing,
            is not an integer, or a text field is not a single ASCII token
        UnsupportedHashFunctionError: If the file ID digest is unavailable
    """
    values = {CHUNK_NO_FIELD: chunk_no, REPLICATION_DEG_FIELD: replication_deg}

    parts = [
        _check_token(version, "version"),
        message_type.literal,
        _check_token(sender_id, "sender_id"),
        encode_file_id(raw_file_id),
    ]
    for field_name in message_type.trailing_fields:
        value = values[field_name]
        if value is None:
            raise InvalidHeaderError(
                f"{message_type.literal} header requires field {field_name}"
            )
        parts.append(str(_field_value(value, field_name)))

    return " ".join(parts) + LINE_TERMINATOR


def tokenize_header(line: Union[str, bytes]) -> List[str]:
    """
    Split a received header line into tokens, dropping the line terminator.

    Raises:
        InvalidHeaderError: If a bytes line is not ASCII
    """
    if isinstance(line, bytes):
        try:
            line = line.decode(HEADER_ENCODING)
        except UnicodeDecodeError as e:
            raise InvalidHeaderError(f"Header is not {HEADER_ENCODING} text") from e
    return line.split()


def encode_message(header_line: str, body: Union[str, bytes] = b"") -> bytes:
    """
    Frame a header line and an optional body into one message.

    Args:
        header_line: Output of build_header (already CRLF-terminated)
        body: Chunk payload; str bodies use the chunk encoding

    Returns:
        header CRLF CRLF body, as bytes
    """
    if isinstance(body, str):
        body = body.encode(CHUNK_ENCODING)
    if not header_line.endswith(LINE_TERMINATOR):
        header_line += LINE_TERMINATOR
    return header_line.encode(HEADER_ENCODING) + LINE_TERMINATOR.encode(HEADER_ENCODING) + body


def decode_message(data: bytes) -> Tuple[Header, bytes]:
    """
    Split a received message into its parsed header and raw body.

    Raises:
        InvalidHeaderError: If the header/body separator is missing or the
            header itself is malformed
    """
    separator_at = data.find(MESSAGE_SEPARATOR)
    if separator_at < 0:
        raise InvalidHeaderError("Message has no header terminator")

    header = parse_header(tokenize_header(data[:separator_at]))
    return header, data[separator_at + len(MESSAGE_SEPARATOR):]
