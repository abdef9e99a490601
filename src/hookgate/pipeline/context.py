"""Read-only payload shared by every hook in a run.

The payload is serialized once at dispatch. Subprocess hooks receive the
encoded bytes on stdin; in-process hooks receive a freshly decoded copy, so
no hook can observe another hook's mutations.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from hookgate.pipeline.errors import InvalidPayloadError


@dataclass(frozen=True)
class HookContext:
    """Immutable view of the payload for one scheduler run.

    Attributes:
        encoded: UTF-8 JSON encoding of the payload (empty when payload is None)
        has_payload: False when the caller passed no payload
    """

    encoded: bytes = b""
    has_payload: bool = False

    @classmethod
    def from_payload(cls, payload: Any) -> HookContext:
        """Create a context from an arbitrary JSON-serializable payload.

        Args:
            payload: Object passed to every hook, or None

        Returns:
            HookContext with the payload encoded

        Raises:
            InvalidPayloadError: If the payload is not JSON-serializable
        """
        if payload is None:
            return cls()

        try:
            encoded = json.dumps(payload).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise InvalidPayloadError(f"Payload is not JSON-serializable: {e}") from e

        return cls(encoded=encoded, has_payload=True)

    @property
    def stdin(self) -> bytes | None:
        """Bytes to write to a subprocess hook's stdin, or None for no input."""
        return self.encoded if self.has_payload else None

    @property
    def size(self) -> int:
        """Encoded payload size in bytes."""
        return len(self.encoded)

    def snapshot(self) -> Any:
        """Return a private decoded copy of the payload.

        Returns:
            New object equal to the original payload, or None
        """
        if not self.has_payload:
            return None
        return json.loads(self.encoded)
