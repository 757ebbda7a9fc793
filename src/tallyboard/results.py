"""Result values handed back to the messaging transport."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from tallyboard.errors import TallyboardError


@dataclass(frozen=True)
class CommandResult:
    """
    Normalized outcome of one command.

    ``message`` is the reply to the sender. ``broadcast`` is optional text for
    the audience channel and is only ever set on success.
    """

    ok: bool
    message: str
    broadcast: Optional[str] = None
    error_code: Optional[str] = None
    transient: bool = False
    operator_alert: bool = False

    @classmethod
    def success(cls, message: str, broadcast: Optional[str] = None) -> "CommandResult":
        return cls(ok=True, message=message, broadcast=broadcast)

    @classmethod
    def failure(cls, error: TallyboardError) -> "CommandResult":
        return cls(
            ok=False,
            message=error.message,
            error_code=error.code,
            transient=error.transient,
            operator_alert=error.operator_alert,
        )

    def to_dict(self) -> dict[str, Any]:
        if self.ok:
            return {"ok": True, "message": self.message, "broadcast": self.broadcast}
        payload: dict[str, Any] = {
            "ok": False,
            "message": self.message,
            "error_code": self.error_code,
        }
        if self.transient:
            payload["retry"] = True
        if self.operator_alert:
            payload["operator_alert"] = True
        return payload
