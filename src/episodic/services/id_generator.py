"""Prefixed ID generation utility."""

import uuid

NOTIFICATION_PREFIX = "notif_"
INTENT_PREFIX = "intent_"
REACTION_PREFIX = "rxn_"


def generate_id(prefix: str) -> str:
    """Return ``prefix`` followed by 16 random hex characters.

    Example: ``generate_id(NOTIFICATION_PREFIX)`` -> ``"notif_a1b2c3d4e5f60718"``.
    """
    return f"{prefix}{uuid.uuid4().hex[:16]}"
