# =============================================================================
# Compliance Row Rules
# =============================================================================
# Reference row validator for operations reported under the anti-money
# laundering regime. Thresholds are expressed in UMA (daily reference unit)
# and depend on the workspace activity type.
# =============================================================================

import re
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

__all__ = [
    "UMA_DAILY_VALUE",
    "NOTICE_THRESHOLDS",
    "CASH_THRESHOLDS",
    "MESSAGES",
    "ComplianceRowValidator",
]

UMA_DAILY_VALUE = 117.31

# UMA counts per activity type
NOTICE_THRESHOLDS: Dict[str, int] = {
    "INMUEBLES": 8025,
    "VEHICULOS": 3210,
    "JOYAS": 3210,
    "ACTIVOS_VIRTUALES": 645,
    "MUTUO_PRESTAMO": 8025,
    "JUEGOS": 325,
    "DEFAULT": 8025,
}
CASH_THRESHOLDS: Dict[str, int] = dict(NOTICE_THRESHOLDS)

MESSAGES: Dict[str, Dict[str, Any]] = {
    "E001": {"code": "E001", "type": "error", "message": "RFC con estructura inválida", "field": "rfc"},
    "E002": {"code": "E002", "type": "error", "message": "CURP requerida para Personas Físicas", "field": "curp"},
    "E003": {"code": "E003", "type": "error", "message": "CURP con estructura inválida", "field": "curp"},
    "E004": {"code": "E004", "type": "error", "message": "Fecha de operación no puede ser futura", "field": "fecha_operacion"},
    "E006": {"code": "E006", "type": "error", "message": "Monto de operación inválido", "field": "monto"},
    "E100": {"code": "E100", "type": "error", "message": "EXCEDE LÍMITE DE EFECTIVO PERMITIDO", "field": "monto_efectivo", "blocking": True},
    "W001": {"code": "W001", "type": "warning", "message": "Faltan datos del Beneficiario Controlador", "field": "beneficiario_controlador"},
}

RFC_PATTERN = re.compile(r"^[A-ZÑ&]{3,4}[0-9]{6}[A-Z0-9]{3}$")
CURP_PATTERN = re.compile(r"^[A-Z]{4}[0-9]{6}[HM][A-Z]{5}[0-9A-Z]{2}$")

CASH_PAYMENT_METHODS = frozenset(["EFECTIVO", "MIXTO"])


def _message(code: str, **extra: Any) -> Dict[str, Any]:
    return {**MESSAGES[code], **extra}


class ComplianceRowValidator:
    """
    Validates one flattened operation row.

    Args:
        activity_type: Workspace activity (e.g. ``"VEHICULOS"``); unknown
            activities use the ``DEFAULT`` thresholds
        today: Reference date for the future-date rule (defaults to today)

    ``validate`` returns a loose verdict dict; ``ValidatorAdapter`` turns it
    into a ``RowVerdict``.
    """

    def __init__(self, activity_type: Optional[str] = None, today: Optional[date] = None):
        self.activity_type = (activity_type or "DEFAULT").upper()
        self.today = today or date.today()
        self.notice_threshold = self._threshold(NOTICE_THRESHOLDS)
        self.cash_threshold = self._threshold(CASH_THRESHOLDS)

    def _threshold(self, table: Mapping[str, int]) -> float:
        return table.get(self.activity_type, table["DEFAULT"]) * UMA_DAILY_VALUE

    def validate(self, data: Mapping[str, Any], row_number: int) -> Dict[str, Any]:
        errors: List[Dict[str, Any]] = []
        warnings: List[Dict[str, Any]] = []

        self._check_format(data, errors)
        requires_followup = self._check_thresholds(data, errors)
        if requires_followup:
            self._check_integrity(data, warnings)

        return {
            "row": row_number,
            "is_valid": not errors,
            "is_blocked": any(e.get("blocking") for e in errors),
            "has_warnings": bool(warnings),
            "requires_followup": requires_followup,
            "errors": errors,
            "warnings": warnings,
        }

    def _check_format(self, data: Mapping[str, Any], errors: List[Dict[str, Any]]) -> None:
        person_type = (data.get("tipo_persona") or "").upper()

        rfc = (data.get("rfc_cliente") or "").upper().strip()
        if rfc and not RFC_PATTERN.match(rfc):
            errors.append(_message("E001", value=rfc))

        if person_type == "PF":
            curp = (data.get("curp_cliente") or "").upper().strip()
            if not curp:
                errors.append(_message("E002"))
            elif not CURP_PATTERN.match(curp):
                errors.append(_message("E003", value=curp))

        operation_date = data.get("fecha_operacion")
        if operation_date and date.fromisoformat(operation_date) > self.today:
            errors.append(_message("E004"))

        amount = data.get("monto_operacion") or 0.0
        if amount <= 0:
            errors.append(_message("E006"))

    def _check_thresholds(self, data: Mapping[str, Any], errors: List[Dict[str, Any]]) -> bool:
        amount = data.get("monto_operacion") or 0.0
        cash = data.get("monto_efectivo") or 0.0
        payment_method = (data.get("forma_pago") or "").upper()

        if cash > 0 or payment_method in CASH_PAYMENT_METHODS:
            effective_cash = cash if cash > 0 else (amount if payment_method == "EFECTIVO" else 0.0)
            if effective_cash > self.cash_threshold:
                errors.append(
                    _message("E100", value=effective_cash, threshold=self.cash_threshold)
                )

        return amount >= self.notice_threshold

    def _check_integrity(self, data: Mapping[str, Any], warnings: List[Dict[str, Any]]) -> None:
        if (data.get("tipo_persona") or "").upper() != "PM":
            return
        if not (data.get("bc_nombre") or data.get("bc_rfc")):
            warnings.append(_message("W001"))
