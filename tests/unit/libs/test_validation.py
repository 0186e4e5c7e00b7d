"""Unit tests for the compliance rules and the validator adapter."""

from datetime import date

import pytest

from libs.models import BeneficialOwner, CanonicalRecord, ClientData, OperationDetails, RowOutcome, RowVerdict
from libs.validation import ComplianceRowValidator, ValidatorAdapter, to_validator_input
from libs.validation.rules import UMA_DAILY_VALUE


TODAY = date(2024, 6, 1)


def _row(**overrides):
    data = {
        "tipo_persona": "PM",
        "rfc_cliente": "ABC123456XY1",
        "curp_cliente": "",
        "fecha_operacion": "2024-01-15",
        "monto_operacion": 15000.0,
        "forma_pago": "TRANSFERENCIA",
        "monto_efectivo": 0.0,
    }
    data.update(overrides)
    return data


def _codes(messages):
    return [m["code"] for m in messages]


class TestComplianceRowValidator:
    @pytest.fixture
    def validator(self):
        return ComplianceRowValidator("VEHICULOS", today=TODAY)

    def test_clean_row_is_valid(self, validator):
        verdict = validator.validate(_row(), 2)
        assert verdict["is_valid"] is True
        assert verdict["errors"] == []
        assert verdict["row"] == 2

    def test_malformed_rfc(self, validator):
        verdict = validator.validate(_row(rfc_cliente="BAD-RFC"), 3)
        assert verdict["is_valid"] is False
        assert _codes(verdict["errors"]) == ["E001"]

    def test_person_requires_curp(self, validator):
        assert _codes(validator.validate(_row(tipo_persona="PF"), 2)["errors"]) == ["E002"]
        assert _codes(
            validator.validate(_row(tipo_persona="PF", curp_cliente="NOPE"), 2)["errors"]
        ) == ["E003"]

    def test_future_date(self, validator):
        assert _codes(validator.validate(_row(fecha_operacion="2024-06-02"), 2)["errors"]) == ["E004"]

    def test_non_positive_amount(self, validator):
        assert "E006" in _codes(validator.validate(_row(monto_operacion=0.0), 2)["errors"])

    def test_cash_over_limit_is_blocking(self, validator):
        over = 3210 * UMA_DAILY_VALUE + 1
        verdict = validator.validate(_row(monto_operacion=over, forma_pago="EFECTIVO"), 2)

        assert verdict["is_blocked"] is True
        assert "E100" in _codes(verdict["errors"])

    def test_explicit_cash_amount_takes_precedence(self, validator):
        verdict = validator.validate(
            _row(monto_operacion=10_000_000.0, forma_pago="MIXTO", monto_efectivo=100.0), 2
        )
        assert verdict["is_blocked"] is False

    def test_followup_warns_about_missing_owner(self, validator):
        verdict = validator.validate(_row(monto_operacion=400_000.0), 2)

        assert verdict["requires_followup"] is True
        assert verdict["is_valid"] is True
        assert _codes(verdict["warnings"]) == ["W001"]

    def test_owner_data_silences_warning(self, validator):
        verdict = validator.validate(_row(monto_operacion=400_000.0, bc_nombre="Eva"), 2)
        assert verdict["warnings"] == []

    def test_unknown_activity_uses_default_threshold(self):
        validator = ComplianceRowValidator("SOMETHING_ELSE", today=TODAY)
        assert validator.notice_threshold == 8025 * UMA_DAILY_VALUE


class TestValidatorAdapter:
    def _record(self):
        return CanonicalRecord(
            client_data=ClientData(person_type="PM", rfc="ABC123456XY1"),
            operation_details=OperationDetails(operation_date="2024-01-15", amount=100.0),
        )

    def test_flattens_record(self):
        record = self._record()
        record.beneficial_owner = BeneficialOwner(first_name="Eva", rfc="X")
        data = to_validator_input(record)

        assert data["rfc_cliente"] == "ABC123456XY1"
        assert data["monto_operacion"] == 100.0
        assert data["bc_nombre"] == "Eva"

    def test_no_owner_keys_without_owner(self):
        assert "bc_nombre" not in to_validator_input(self._record())

    def test_dict_verdicts_are_coerced(self):
        class Legacy:
            def validate(self, data, row_number):
                return {"is_valid": True, "requires_aviso": True, "warnings": [{"code": "W"}]}

        verdict = ValidatorAdapter(Legacy()).validate(self._record(), 2)

        assert isinstance(verdict, RowVerdict)
        assert verdict.requires_followup is True
        assert verdict.has_warnings is True
        assert verdict.outcome == RowOutcome.VALID

    def test_blocked_is_never_valid(self):
        class Strict:
            def validate(self, data, row_number):
                return RowVerdict(is_valid=True, is_blocked=True)

        verdict = ValidatorAdapter(Strict()).validate(self._record(), 2)
        assert verdict.is_valid is False
        assert verdict.outcome == RowOutcome.BLOCKED

    def test_validator_exception_becomes_invalid_verdict(self):
        class Broken:
            def validate(self, data, row_number):
                raise KeyError("boom")

        verdict = ValidatorAdapter(Broken()).validate(self._record(), 7)

        assert verdict.outcome == RowOutcome.INVALID
        assert verdict.errors[0]["code"] == "VALIDATOR_ERROR"

    def test_reference_rules_through_adapter(self):
        adapter = ValidatorAdapter(ComplianceRowValidator("VEHICULOS", today=TODAY))
        record = self._record()
        record.client_data.rfc = "BAD"

        verdict = adapter.validate(record, 5)
        assert verdict.outcome == RowOutcome.INVALID
        assert verdict.errors[0]["code"] == "E001"
