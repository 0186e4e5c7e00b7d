# =============================================================================
# Row Normalizer Module
# =============================================================================
# Maps one raw row dict (heterogeneous column names and casing) into the
# CanonicalRecord shape, coercing dates, booleans and numbers with fixed
# fallback rules. Pure: never raises for any cell content.
# =============================================================================

import math
import random
import re
import string
from datetime import date, datetime, timedelta
from typing import Any, Mapping, Optional

from libs.models import BeneficialOwner, CanonicalRecord, ClientData, OperationDetails

__all__ = [
    "normalize_row",
    "normalize_date",
    "normalize_bool",
    "normalize_number",
    "generate_folio",
    "lookup",
    "SERIAL_EPOCH",
    "TRUE_VALUES",
]

# Spreadsheet serial dates count days from this epoch.
SERIAL_EPOCH = date(1899, 12, 30)

TRUE_VALUES = frozenset(["si", "sí", "yes", "true", "1"])

_ISO_DATE = re.compile(r"^(\d{4}-\d{2}-\d{2})")
_NUMBER_NOISE = re.compile(r"[$,\s]")
_FOLIO_ALPHABET = string.ascii_uppercase + string.digits


# -----------------------------------------------------------------------------
# Column lookup
# -----------------------------------------------------------------------------

def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and not value.strip()


def lookup(row: Mapping[str, Any], name: str, alias: Optional[str] = None) -> Any:
    """
    Find a cell by its declared column name, then its lowercase alias, then
    either of them case-insensitively. Blank cells count as absent.

    Examples:
        >>> lookup({"rfc_cliente": "XAXX010101000"}, "RFC_CLIENTE")
        'XAXX010101000'
        >>> lookup({"Codigo_Postal": "06600"}, "CP", "codigo_postal")
        '06600'
    """
    candidates = [name, name.lower()]
    if alias:
        candidates.append(alias)

    for key in candidates:
        value = row.get(key)
        if not _is_blank(value):
            return value

    folded = {str(key).strip().lower(): value for key, value in row.items()}
    for key in candidates:
        value = folded.get(key.lower())
        if not _is_blank(value):
            return value
    return None


def _text(value: Any, upper: bool = False) -> str:
    if _is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text.upper() if upper else text


# -----------------------------------------------------------------------------
# Type coercion
# -----------------------------------------------------------------------------

def _from_serial(days: float) -> Optional[str]:
    try:
        return (SERIAL_EPOCH + timedelta(days=int(days))).isoformat()
    except (OverflowError, ValueError):
        return None


def normalize_date(value: Any) -> Optional[str]:
    """
    Coerce a cell into an ISO ``YYYY-MM-DD`` string, or ``None``.

    Accepts date/datetime objects, ISO strings (time part dropped),
    ``dd/mm/yyyy`` and ``yyyy/mm/dd`` strings, and spreadsheet serials.

    Examples:
        >>> normalize_date("2024-03-15T10:00:00Z")
        '2024-03-15'
        >>> normalize_date("15/03/2024")
        '2024-03-15'
        >>> normalize_date(45366)
        '2024-03-15'
        >>> normalize_date("not a date") is None
        True
    """
    if _is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (int, float)):
        return _from_serial(value)

    text = str(value).strip()

    match = _ISO_DATE.match(text)
    if match:
        try:
            return date.fromisoformat(match.group(1)).isoformat()
        except ValueError:
            return None

    if "/" in text:
        parts = text.split("/")
        if len(parts) != 3 or not all(p.strip().isdigit() for p in parts):
            return None
        first, second, third = (int(p) for p in parts)
        try:
            if len(parts[0].strip()) == 4:
                return date(first, second, third).isoformat()
            return date(third, second, first).isoformat()
        except ValueError:
            return None

    try:
        return _from_serial(float(text))
    except ValueError:
        return None


def normalize_bool(value: Any) -> bool:
    """
    Examples:
        >>> normalize_bool("Sí"), normalize_bool(1), normalize_bool("no")
        (True, True, False)
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    if value is None:
        return False
    return str(value).strip().lower() in TRUE_VALUES


def normalize_number(value: Any) -> float:
    """
    Locale-agnostic float parsing; ``$``, ``,`` and whitespace are ignored.

    Examples:
        >>> normalize_number("$1,250,000.50")
        1250000.5
        >>> normalize_number("abc")
        0.0
    """
    if _is_blank(value) or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(_NUMBER_NOISE.sub("", str(value)))
        except ValueError:
            return 0.0
    return number if math.isfinite(number) else 0.0


def generate_folio(year: Optional[int] = None) -> str:
    """Operation folio ``OP-{year}-{6 uppercase alphanumerics}``."""
    year = year or datetime.now().year
    suffix = "".join(random.choices(_FOLIO_ALPHABET, k=6))
    return f"OP-{year}-{suffix}"


# -----------------------------------------------------------------------------
# Row → CanonicalRecord
# -----------------------------------------------------------------------------

def _client_data(row: Mapping[str, Any]) -> ClientData:
    return ClientData(
        person_type=_text(lookup(row, "TIPO_PERSONA"), upper=True),
        first_name=_text(lookup(row, "NOMBRE")),
        paternal_surname=_text(lookup(row, "APELLIDO_PATERNO")),
        maternal_surname=_text(lookup(row, "APELLIDO_MATERNO")),
        business_name=_text(lookup(row, "RAZON_SOCIAL_CLIENTE", "razon_social")),
        rfc=_text(lookup(row, "RFC_CLIENTE", "rfc"), upper=True),
        curp=_text(lookup(row, "CURP", "curp_cliente"), upper=True),
        birth_date=normalize_date(lookup(row, "FECHA_NACIMIENTO")),
        nationality=_text(lookup(row, "NACIONALIDAD")) or "MX",
        economic_activity=_text(lookup(row, "ACTIVIDAD_ECONOMICA")),
        is_pep=normalize_bool(lookup(row, "ES_PEP")),
        country=_text(lookup(row, "PAIS")) or "MX",
        state=_text(lookup(row, "ESTADO")),
        municipality=_text(lookup(row, "MUNICIPIO")),
        neighborhood=_text(lookup(row, "COLONIA")),
        street=_text(lookup(row, "CALLE")),
        exterior_number=_text(lookup(row, "NUM_EXTERIOR", "numero_exterior")),
        interior_number=_text(lookup(row, "NUM_INTERIOR", "numero_interior")),
        postal_code=_text(lookup(row, "CP", "codigo_postal")),
        phone=_text(lookup(row, "TELEFONO")),
        email=_text(lookup(row, "EMAIL")),
    )


def _operation_details(row: Mapping[str, Any]) -> OperationDetails:
    return OperationDetails(
        operation_type=_text(lookup(row, "TIPO_OPERACION")),
        operation_date=normalize_date(lookup(row, "FECHA_OPERACION")),
        amount=normalize_number(lookup(row, "MONTO_OPERACION", "monto")),
        currency=_text(lookup(row, "MONEDA"), upper=True) or "MXN",
        payment_method=_text(lookup(row, "FORMA_PAGO", "instrumento_pago")),
        cash_amount=normalize_number(lookup(row, "MONTO_EFECTIVO")),
        description=_text(lookup(row, "DESCRIPCION")),
    )


def _beneficial_owner(row: Mapping[str, Any]) -> Optional[BeneficialOwner]:
    if not normalize_bool(lookup(row, "APLICA_BC")):
        return None
    return BeneficialOwner(
        first_name=_text(lookup(row, "BC_NOMBRE")),
        paternal_surname=_text(lookup(row, "BC_APELLIDO_PATERNO")),
        maternal_surname=_text(lookup(row, "BC_APELLIDO_MATERNO")),
        rfc=_text(lookup(row, "BC_RFC"), upper=True),
        curp=_text(lookup(row, "BC_CURP"), upper=True),
        nationality=_text(lookup(row, "BC_NACIONALIDAD")) or "MX",
        ownership_percentage=normalize_number(lookup(row, "BC_PORCENTAJE")),
        control_type=_text(lookup(row, "BC_TIPO_CONTROL")),
    )


def normalize_row(row: Mapping[str, Any]) -> CanonicalRecord:
    """
    Map a raw row into a CanonicalRecord.

    Absent or malformed fields fall back to ``""``, ``0.0``, ``None`` for
    dates, or the ``MX``/``MXN`` defaults. The beneficial owner block is
    only populated when ``APLICA_BC`` is truthy.
    """
    row = row if isinstance(row, Mapping) else {}
    return CanonicalRecord(
        client_data=_client_data(row),
        operation_details=_operation_details(row),
        beneficial_owner=_beneficial_owner(row),
        folio=generate_folio(),
    )
