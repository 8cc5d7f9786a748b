"""
Unit tests for field validators and composite request validation.
"""

from datetime import datetime, timedelta, timezone

import pytest

from medbook import validation as v
from medbook.models import ValidationError


def _fields(errors):
    return {e.field for e in errors}


def _iso(delta: timedelta) -> str:
    return (datetime.now(timezone.utc) + delta).isoformat()


# ── Tests: email ─────────────────────────────────────────────────────

def test_email_ok():
    assert v.email("a@b.com") is None
    assert v.email("test@example.com") is None


def test_email_empty():
    assert v.email("") == ValidationError("email", "Email é obrigatório")
    assert v.email(None) == ValidationError("email", "Email é obrigatório")


@pytest.mark.parametrize("value", ["invalid-email", "a@b", "a b@c.com", "@b.com", 123])
def test_email_malformed(value):
    assert v.email(value) == ValidationError("email", "Email inválido")


# ── Tests: password ──────────────────────────────────────────────────

def test_password_ok():
    assert v.password("password123") is None
    assert v.password("123456") is None


def test_password_too_short():
    err = v.password("123")
    assert err.field == "password"
    assert err.message == "Senha deve ter pelo menos 6 caracteres"


def test_password_empty():
    assert v.password("") == ValidationError("password", "Senha é obrigatória")


# ── Tests: required ──────────────────────────────────────────────────

def test_required_uses_display_name():
    err = v.required("   ", "Nome do documento")
    assert err == ValidationError("Nome do documento", "Nome do documento é obrigatório")
    assert v.required("", "Nome")
    assert v.required(None, "Nome")
    assert v.required("x", "Nome") is None


# ── Tests: phone ─────────────────────────────────────────────────────

@pytest.mark.parametrize("value", ["", None])
def test_phone_optional(value):
    assert v.phone(value) is None


@pytest.mark.parametrize("value", ["(11) 99999-9999", "(21) 3333-4444"])
def test_phone_ok(value):
    assert v.phone(value) is None


@pytest.mark.parametrize("value", ["11999999999", "(11)99999-9999", "(1) 99999-9999", "(11) 999-9999"])
def test_phone_malformed(value):
    err = v.phone(value)
    assert err.field == "phone"
    assert err.message == "Telefone deve estar no formato (11) 99999-9999"


# ── Tests: crm ───────────────────────────────────────────────────────

@pytest.mark.parametrize("value", ["123456/SP", "1234/RJ"])
def test_crm_ok(value):
    assert v.crm(value) is None


def test_crm_empty():
    assert v.crm("") == ValidationError("crm", "CRM é obrigatório")


@pytest.mark.parametrize("value", ["123456", "123/SP", "1234567/SP", "123456/sp", "123456/SPX"])
def test_crm_malformed(value):
    assert v.crm(value) == ValidationError("crm", "CRM deve estar no formato 123456/SP")


# ── Tests: validate_appointment ──────────────────────────────────────

def test_appointment_all_fields_missing():
    errors = v.validate_appointment({})
    assert _fields(errors) == {"doctor_id", "patient_id", "appointment_date"}
    assert len(errors) == 3


def test_appointment_future_ok():
    data = {"doctor_id": "doctor1", "patient_id": "patient1", "appointment_date": _iso(timedelta(days=1))}
    assert v.validate_appointment(data) == []


def test_appointment_accepts_js_style_timestamp():
    now = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)
    data = {"doctor_id": 1, "patient_id": 2, "appointment_date": "2030-01-02T09:00:00.000Z"}
    assert v.validate_appointment(data, now=now) == []


def test_appointment_past_date():
    data = {"doctor_id": "doctor1", "patient_id": "patient1", "appointment_date": _iso(timedelta(days=-1))}
    errors = v.validate_appointment(data)
    assert errors == [ValidationError("appointment_date", "Data da consulta deve ser futura")]


def test_appointment_equal_to_now_is_rejected():
    now = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)
    data = {"doctor_id": 1, "patient_id": 2, "appointment_date": now.isoformat()}
    assert _fields(v.validate_appointment(data, now=now)) == {"appointment_date"}


def test_appointment_naive_timestamp_read_as_utc():
    now = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)
    later = {"doctor_id": 1, "patient_id": 2, "appointment_date": "2030-01-01T12:00:01"}
    earlier = dict(later, appointment_date="2030-01-01T11:59:59")
    assert v.validate_appointment(later, now=now) == []
    assert len(v.validate_appointment(earlier, now=now)) == 1


def test_appointment_unparseable_date_is_format_error():
    data = {"doctor_id": 1, "patient_id": 2, "appointment_date": "next tuesday"}
    errors = v.validate_appointment(data)
    assert errors == [ValidationError("appointment_date", "Data da consulta inválida")]


def test_appointment_missing_ids_and_past_date_reported_together():
    data = {"doctor_id": "  ", "appointment_date": _iso(timedelta(hours=-2))}
    errors = v.validate_appointment(data)
    assert _fields(errors) == {"doctor_id", "patient_id", "appointment_date"}
    assert any(e.message == "Data da consulta deve ser futura" for e in errors)


def test_appointment_validation_is_idempotent():
    data = {"patient_id": "p", "appointment_date": "2000-01-01T00:00:00Z"}
    snapshot = dict(data)
    assert v.validate_appointment(data) == v.validate_appointment(data)
    assert data == snapshot


def test_parse_appointment_date():
    parsed = v.parse_appointment_date("2030-05-01T10:00:00-03:00")
    assert parsed == datetime(2030, 5, 1, 13, 0, tzinfo=timezone.utc)
    assert v.parse_appointment_date("2030-05-01").tzinfo is timezone.utc
    assert v.parse_appointment_date("garbage") is None
    assert v.parse_appointment_date(12345) is None


# ── Tests: other composites ──────────────────────────────────────────

def test_validate_login():
    assert v.validate_login({"email": "a@b.com", "password": "secret1"}) == []
    errors = v.validate_login({"email": "invalid-email", "password": "123"})
    assert [e.field for e in errors] == ["email", "password"]


def test_validate_registration_patient():
    data = {"email": "p@x.com", "password": "password123", "full_name": "João Silva",
            "phone": "(11) 99999-9999", "user_type": "patient"}
    assert v.validate_registration(data) == []


def test_validate_registration_doctor_requires_crm_and_specialty():
    data = {"email": "d@x.com", "password": "password123", "full_name": "Dr. Maria Santos",
            "user_type": "doctor"}
    assert _fields(v.validate_registration(data)) == {"crm", "Especialidade"}
    data.update(crm="123456/SP", specialty="Cardiologia")
    assert v.validate_registration(data) == []


def test_validate_registration_collects_every_error():
    errors = v.validate_registration({"phone": "123"})
    assert _fields(errors) == {"email", "password", "Nome completo", "phone"}


def test_validate_document():
    assert v.validate_document({"document_name": "Receita"}) == []
    assert _fields(v.validate_document({})) == {"Nome do documento"}


# ── Tests: wrong JSON types ──────────────────────────────────────────

@pytest.mark.parametrize("value", [123, 4.5, ["Receita"], {"name": "Receita"}, True])
def test_required_rejects_non_text(value):
    assert v.required(value, "Nome do documento") == ValidationError(
        "Nome do documento", "Nome do documento inválido"
    )
    assert _fields(v.validate_document({"document_name": value})) == {"Nome do documento"}


@pytest.mark.parametrize("value", [{"x": 1}, [1], True, 1.5])
def test_appointment_rejects_non_identifier_ids(value):
    data = {"doctor_id": value, "patient_id": value, "appointment_date": _iso(timedelta(days=1))}
    errors = v.validate_appointment(data)
    assert errors == [
        ValidationError("doctor_id", "Médico inválido"),
        ValidationError("patient_id", "Paciente inválido"),
    ]


def test_appointment_accepts_int_and_string_ids():
    data = {"doctor_id": 7, "patient_id": "42", "appointment_date": _iso(timedelta(days=1))}
    assert v.validate_appointment(data) == []


def test_appointment_rejects_non_text_notes():
    data = {"doctor_id": 1, "patient_id": 2, "appointment_date": _iso(timedelta(days=1)),
            "notes": {"text": "Consulta"}}
    assert v.validate_appointment(data) == [ValidationError("notes", "Observações inválidas")]
    data["notes"] = "Consulta de rotina"
    assert v.validate_appointment(data) == []


def test_parse_appointment_date_short_fraction():
    parsed = v.parse_appointment_date("2099-01-01T09:00:00.5Z")
    assert parsed == datetime(2099, 1, 1, 9, 0, 0, 500000, tzinfo=timezone.utc)
