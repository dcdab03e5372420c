"""
Framing of PeerMessages on the transport.

Two encodings:

* colon delimited: `command:stateHash:newStateHash:data`
  (an empty stateHash means None, the data is the remainder of the string so it may contain colons)
* hash prefixed: `<hash of blob + peer id><json blob>`. The prefix is a transport level integrity check,
  separate from the state hashes inside the message.

Malformed input never raises: it comes back as None, and the caller drops the packet.
"""

import json
import logging
from typing import Optional

from pydantic import ValidationError

from src.api.models import PeerMessage
from src.core.hashing import HASH_HEX_LENGTH, Crypto, get_hash

logger = logging.getLogger(__name__)

SEPARATOR = ":"
# command, state hash, new state hash, data
N_FIELDS = 4


# --- COLON DELIMITED ---
def peer_message_to_data(message: PeerMessage) -> str:
    return SEPARATOR.join(
        [
            str(message.command),
            message.state_hash or "",
            message.new_state_hash,
            message.data,
        ]
    )


def data_to_peer_message(raw: object) -> Optional[PeerMessage]:
    if not isinstance(raw, str):
        return None
    fields = raw.split(SEPARATOR, N_FIELDS - 1)
    if len(fields) != N_FIELDS:
        return None
    command, state_hash, new_state_hash, data = fields
    try:
        return PeerMessage(
            command=command,
            state_hash=state_hash or None,
            new_state_hash=new_state_hash,
            data=data,
        )
    except ValidationError:
        logger.debug("Dropping malformed colon framed message: %r", raw)
        return None


# --- HASH PREFIXED ---
def package_peer_message(message: PeerMessage, own_id: str, crypto: Crypto) -> str:
    """Prefix the serialized message with hash(blob + own id)."""
    blob = message.to_json()
    return get_hash(crypto, blob + own_id) + blob


def unpackage_peer_message(
    raw: object, sender_id: str, crypto: Crypto
) -> Optional[PeerMessage]:
    """
    Reverse operation of package_peer_message
    ----

    Returns None if:
    * the data is not a string, or too short to even hold the prefix
    * the prefix does not match hash(blob + sender id)
    * the blob is not JSON, or misses required fields
    """
    if not isinstance(raw, str):
        logger.debug("Dropping message of type %s", type(raw).__name__)
        return None
    if len(raw) <= HASH_HEX_LENGTH:
        logger.debug("Dropping message of length %s", len(raw))
        return None

    prefix, blob = raw[:HASH_HEX_LENGTH], raw[HASH_HEX_LENGTH:]
    if get_hash(crypto, blob + sender_id) != prefix:
        logger.debug("Dropping message from %s: integrity hash mismatch", sender_id)
        return None

    try:
        return PeerMessage.model_validate(json.loads(blob))
    except (json.JSONDecodeError, ValidationError):
        logger.debug("Dropping message from %s: unparsable body", sender_id)
        return None
