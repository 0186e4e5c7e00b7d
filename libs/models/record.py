# =============================================================================
# Canonical Record Models
# =============================================================================
# The normalized, type-coerced shape that validation and persistence work on.
# Produced by libs.tabular.normalizer from one spreadsheet row.
# =============================================================================

from typing import Optional

from pydantic import BaseModel, Field

__all__ = [
    "ClientData",
    "OperationDetails",
    "BeneficialOwner",
    "CanonicalRecord",
]


class ClientData(BaseModel):
    """Identity, address and contact data of the client behind an operation."""

    person_type: str = ""
    first_name: str = ""
    paternal_surname: str = ""
    maternal_surname: str = ""
    business_name: str = ""
    rfc: str = ""
    curp: str = ""
    birth_date: Optional[str] = None
    nationality: str = "MX"
    economic_activity: str = ""
    is_pep: bool = False

    country: str = "MX"
    state: str = ""
    municipality: str = ""
    neighborhood: str = ""
    street: str = ""
    exterior_number: str = ""
    interior_number: str = ""
    postal_code: str = ""

    phone: str = ""
    email: str = ""


class OperationDetails(BaseModel):
    operation_type: str = ""
    operation_date: Optional[str] = None
    amount: float = 0.0
    currency: str = "MXN"
    payment_method: str = ""
    cash_amount: float = 0.0
    description: str = ""


class BeneficialOwner(BaseModel):
    """Secondary party; only present when the row declares one."""

    first_name: str = ""
    paternal_surname: str = ""
    maternal_surname: str = ""
    rfc: str = ""
    curp: str = ""
    nationality: str = "MX"
    ownership_percentage: float = 0.0
    control_type: str = ""


class CanonicalRecord(BaseModel):
    client_data: ClientData = Field(default_factory=ClientData)
    operation_details: OperationDetails = Field(default_factory=OperationDetails)
    beneficial_owner: Optional[BeneficialOwner] = None

    xml_status: str = "not_generated"
    risk_score: Optional[float] = None
    folio: str = ""
