# =============================================================================
# Validator Adapter
# =============================================================================
# Thin seam between the pipeline and the row validator:
# - CanonicalRecord → flat validator input (declared column vocabulary)
# - loose verdict (dict or RowVerdict) → RowVerdict
# =============================================================================

import logging
from typing import Any, Dict, Mapping, Protocol, Union, runtime_checkable

from libs.models import CanonicalRecord, RowVerdict

__all__ = ["RowValidator", "ValidatorAdapter", "to_validator_input"]

logger = logging.getLogger(__name__)


@runtime_checkable
class RowValidator(Protocol):
    """Anything that can judge one flattened row."""

    def validate(
        self, data: Mapping[str, Any], row_number: int
    ) -> Union[RowVerdict, Mapping[str, Any]]:
        ...


def to_validator_input(record: CanonicalRecord) -> Dict[str, Any]:
    """Flatten a CanonicalRecord into the column vocabulary the validator reads."""
    client = record.client_data
    operation = record.operation_details
    data: Dict[str, Any] = {
        "tipo_persona": client.person_type,
        "nombre": client.first_name,
        "apellido_paterno": client.paternal_surname,
        "apellido_materno": client.maternal_surname,
        "razon_social": client.business_name,
        "rfc_cliente": client.rfc,
        "curp_cliente": client.curp,
        "fecha_nacimiento": client.birth_date,
        "nacionalidad": client.nationality,
        "actividad_economica": client.economic_activity,
        "es_pep": client.is_pep,
        "codigo_postal": client.postal_code,
        "tipo_operacion": operation.operation_type,
        "fecha_operacion": operation.operation_date,
        "monto_operacion": operation.amount,
        "moneda": operation.currency,
        "forma_pago": operation.payment_method,
        "monto_efectivo": operation.cash_amount,
    }

    owner = record.beneficial_owner
    if owner is not None:
        data.update(
            {
                "bc_nombre": owner.first_name,
                "bc_apellido_paterno": owner.paternal_surname,
                "bc_rfc": owner.rfc,
                "bc_curp": owner.curp,
                "bc_porcentaje": owner.ownership_percentage,
            }
        )
    return data


def _coerce_verdict(raw: Union[RowVerdict, Mapping[str, Any]]) -> RowVerdict:
    if isinstance(raw, RowVerdict):
        verdict = raw
    else:
        errors = list(raw.get("errors") or [])
        warnings = list(raw.get("warnings") or [])
        # requires_aviso is the validator's historical name for the follow-up flag
        verdict = RowVerdict(
            is_valid=bool(raw.get("is_valid", not errors)),
            is_blocked=bool(raw.get("is_blocked", False)),
            has_warnings=bool(raw.get("has_warnings", bool(warnings))),
            requires_followup=bool(
                raw.get("requires_followup", raw.get("requires_aviso", False))
            ),
            errors=errors,
            warnings=warnings,
        )

    # A blocked row is never valid.
    if verdict.is_blocked and verdict.is_valid:
        verdict = verdict.model_copy(update={"is_valid": False})
    return verdict


class ValidatorAdapter:
    """
    Wraps a ``RowValidator`` so the pipeline always gets a ``RowVerdict``.

    A validator that raises for one row yields an invalid verdict for that
    row; processing of the remaining rows continues.
    """

    def __init__(self, validator: RowValidator):
        self.validator = validator

    def validate(self, record: CanonicalRecord, row_number: int) -> RowVerdict:
        try:
            raw = self.validator.validate(to_validator_input(record), row_number)
        except Exception as e:
            logger.warning(f"Validator failed on row {row_number}: {e}")
            return RowVerdict(
                is_valid=False,
                errors=[
                    {
                        "code": "VALIDATOR_ERROR",
                        "type": "error",
                        "message": f"Validation could not be completed: {e}",
                    }
                ],
            )
        return _coerce_verdict(raw)
