"""Cash-register (caja) session state for the active location."""

from __future__ import annotations

import math
from decimal import Decimal
from enum import Enum
from typing import Any, Protocol

from caja_pos.errors import CollaboratorError, RegisterAlreadyOpenError, RegisterNotOpenError, ValidationError
from caja_pos.logs import get_logger
from caja_pos.models import ClosingSummary, RegisterSession, money

logger = get_logger(__name__)


class RegisterBackend(Protocol):
    def open_register(self, opening_float: Decimal) -> dict[str, Any]: ...

    def close_register(self, operator_name: str) -> dict[str, Any]: ...

    def list_register_history(self) -> list[dict[str, Any]]: ...


class RegisterState(Enum):
    CLOSED = "closed"
    OPEN = "open"


def parse_opening_float(value: Any) -> Decimal:
    """Accept a finite number > 0 (or its text form); anything else is a validation error."""
    if isinstance(value, bool):
        raise ValidationError("Ingresa un monto válido.")
    if isinstance(value, str):
        try:
            number = float(value.strip().replace(",", "."))
        except ValueError as exc:
            raise ValidationError("Ingresa un monto válido.") from exc
    elif isinstance(value, (int, float, Decimal)):
        number = float(value)
    else:
        raise ValidationError("Ingresa un monto válido.")
    if not math.isfinite(number) or number <= 0:
        raise ValidationError("Ingresa un monto válido.")
    return money(value.strip().replace(",", ".") if isinstance(value, str) else value)


class RegisterSessionManager:
    """Caches whether a register session is open; the backend stays authoritative."""

    def __init__(self, backend: RegisterBackend) -> None:
        self.backend = backend
        self.state = RegisterState.CLOSED
        self.verified = False
        self.location_id = ""

    @property
    def is_open(self) -> bool:
        return self.state is RegisterState.OPEN

    def refresh(self) -> RegisterState:
        """Derive the state from session history: open iff some session has no closing time."""
        try:
            sessions = self.history()
        except CollaboratorError as exc:
            logger.warning("register_refresh_failed", location_id=self.location_id, error=exc.message)
            return self.state
        self.state = RegisterState.OPEN if any(session.is_open for session in sessions) else RegisterState.CLOSED
        self.verified = True
        logger.info("register_refreshed", location_id=self.location_id, state=self.state.value)
        return self.state

    def set_location(self, location_id: str) -> RegisterState:
        """Re-derive the state when the active location changes; otherwise keep the cache."""
        if location_id == self.location_id and self.verified:
            return self.state
        self.location_id = location_id
        self.state = RegisterState.CLOSED
        self.verified = False
        return self.refresh()

    def history(self) -> list[RegisterSession]:
        return [RegisterSession.from_wire(raw) for raw in self.backend.list_register_history()]

    def open(self, opening_float: Any) -> None:
        amount = parse_opening_float(opening_float)
        if self.is_open:
            raise RegisterAlreadyOpenError()
        try:
            self.backend.open_register(amount)
        except CollaboratorError as exc:
            if exc.is_rejection:
                raise RegisterAlreadyOpenError(exc.message) from exc
            raise
        self.state = RegisterState.OPEN
        self.verified = True
        logger.info("register_opened", location_id=self.location_id, opening_float=str(amount))

    def close(self, operator_name: str) -> ClosingSummary:
        if not self.is_open:
            raise RegisterNotOpenError()
        try:
            data = self.backend.close_register(operator_name)
        except CollaboratorError as exc:
            if exc.is_rejection:
                raise RegisterNotOpenError(exc.message) from exc
            raise
        self.state = RegisterState.CLOSED
        summary = ClosingSummary.from_wire(data.get("resumen") or {})
        logger.info("register_closed", location_id=self.location_id, total_sold=str(summary.total_sold))
        return summary

    def require_open(self) -> None:
        if not self.is_open:
            raise RegisterNotOpenError("No puedes vender si no abres la caja.")
