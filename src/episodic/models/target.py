"""Target keys: identity of anything that can be reacted to or commented on."""

import re
from dataclasses import dataclass

from episodic.errors.exceptions import InvalidTargetError
from episodic.models.enums import TargetType

_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,128}$")
_PARENT_PATTERN = re.compile(r"^[A-Za-z0-9_.:-]{1,256}$")


@dataclass(frozen=True)
class TargetKey:
    """``(type, id, parent?)`` triple with a canonical text form.

    The text form is ``type:id`` or ``type:id:parent``. The parent part may
    itself contain colons, so a comment can carry the key of the review it
    belongs to (``comment:c9:review:r1``) and a season of a review is
    ``review:r1:2``.
    """

    target_type: TargetType
    target_id: str
    parent_key: str | None = None

    def __post_init__(self) -> None:
        if not _ID_PATTERN.match(self.target_id or ""):
            raise InvalidTargetError(
                f"Invalid target id '{self.target_id}'",
                {"target_id": self.target_id},
            )
        if self.parent_key is not None and not _PARENT_PATTERN.match(self.parent_key):
            raise InvalidTargetError(
                f"Invalid parent key '{self.parent_key}'",
                {"parent_key": self.parent_key},
            )

    @classmethod
    def parse(cls, raw: str) -> "TargetKey":
        if not isinstance(raw, str) or not raw:
            raise InvalidTargetError("Target key must be a non-empty string")
        parts = raw.split(":", 2)
        if len(parts) < 2:
            raise InvalidTargetError(f"Malformed target key '{raw}'", {"target_key": raw})
        try:
            target_type = TargetType(parts[0])
        except ValueError:
            raise InvalidTargetError(
                f"Unsupported target type '{parts[0]}'",
                {"allowed": [t.value for t in TargetType]},
            ) from None
        parent = parts[2] if len(parts) == 3 else None
        return cls(target_type=target_type, target_id=parts[1], parent_key=parent)

    def __str__(self) -> str:
        base = f"{self.target_type.value}:{self.target_id}"
        return f"{base}:{self.parent_key}" if self.parent_key else base


def in_family(candidate: str, root: str) -> bool:
    """Whether ``candidate`` is ``root``, a sub-key of it, or a child parented by either.

    ``review:r1`` covers ``review:r1:2``, ``comment:c9:review:r1`` and
    ``comment:c2:review:r1:2`` but not ``comment:review:r1``, whose id is
    ``review`` and whose parent is ``r1``.
    """
    if candidate == root or candidate.startswith(f"{root}:"):
        return True
    parts = candidate.split(":", 2)
    if len(parts) < 3:
        return False
    parent = parts[2]
    return parent == root or parent.startswith(f"{root}:")
