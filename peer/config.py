"""Peer configuration read from the environment."""

import os

from common.constants import DEFAULT_LOCK_STRIPES, DEFAULT_PEER_ID, DEFAULT_PROTOCOL_VERSION

PEER_ID = os.getenv("BACKUP_PEER_ID", DEFAULT_PEER_ID)

# Version written into outgoing headers
PROTOCOL_VERSION = os.getenv("BACKUP_PROTOCOL_VERSION", DEFAULT_PROTOCOL_VERSION)

# Root under which the peer/ storage tree is created; defaults to the working directory
STORAGE_ROOT = os.getenv("BACKUP_STORAGE_ROOT") or os.getcwd()

LOCK_STRIPES = int(os.getenv("BACKUP_LOCK_STRIPES", str(DEFAULT_LOCK_STRIPES)))
