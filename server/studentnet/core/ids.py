# StudentNetwork/server/studentnet/core/ids.py

from studentnet.core.exceptions import ValidationError

SEPARATOR = "_"


def _check(id_a: str, id_b: str) -> None:
    if not id_a or not id_b:
        raise ValidationError("Both user ids are required.")
    if id_a == id_b:
        raise ValidationError("A relationship needs two distinct users.")


def pair_key(id_a: str, id_b: str) -> str:
    """
    Symmetric id for an unordered pair of users.

    pair_key(a, b) == pair_key(b, a). Connections and chat threads are stored
    under this key so both participants always address the same document.
    """
    _check(id_a, id_b)
    return SEPARATOR.join(sorted((id_a, id_b)))


def request_key(sender_id: str, receiver_id: str) -> str:
    """Directional id of a connection request from sender to receiver."""
    _check(sender_id, receiver_id)
    return f"{sender_id}{SEPARATOR}{receiver_id}"
