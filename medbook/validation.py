"""
Field validators and per-request composite validation.

Each field validator returns None when the value is acceptable or a single
ValidationError for its first failing rule. Composite validators collect
every field's error into a list so the caller can report them all at once.
"""

import re
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional

from medbook.config import CRM_PATTERN, EMAIL_PATTERN, MIN_PASSWORD_LENGTH, PHONE_PATTERN
from medbook.models import Role, ValidationError

_EMAIL_RE = re.compile(EMAIL_PATTERN)
_PHONE_RE = re.compile(PHONE_PATTERN)
_CRM_RE = re.compile(CRM_PATTERN)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def _is_identifier(value: Any) -> bool:
    """Ids arrive as ints or strings; bools, floats and containers are rejected."""
    if isinstance(value, bool):
        return False
    return isinstance(value, (int, str))


def _matches(pattern: re.Pattern, value: Any) -> bool:
    return isinstance(value, str) and pattern.match(value) is not None


# ── Field validators ─────────────────────────────────────────────────

def email(value: Any) -> Optional[ValidationError]:
    if not value:
        return ValidationError("email", "Email é obrigatório")
    if not _matches(_EMAIL_RE, value):
        return ValidationError("email", "Email inválido")
    return None


def password(value: Any) -> Optional[ValidationError]:
    if not value:
        return ValidationError("password", "Senha é obrigatória")
    if not isinstance(value, str) or len(value) < MIN_PASSWORD_LENGTH:
        return ValidationError(
            "password", f"Senha deve ter pelo menos {MIN_PASSWORD_LENGTH} caracteres"
        )
    return None


def required(value: Any, field_name: str) -> Optional[ValidationError]:
    """Reject missing, empty or whitespace-only values; *field_name* is the display name."""
    if _is_blank(value):
        return ValidationError(field_name, f"{field_name} é obrigatório")
    if not isinstance(value, str):
        return ValidationError(field_name, f"{field_name} inválido")
    return None


def phone(value: Any) -> Optional[ValidationError]:
    """Phone is optional: only a non-empty value is format-checked."""
    if value and not _matches(_PHONE_RE, value):
        return ValidationError("phone", "Telefone deve estar no formato (11) 99999-9999")
    return None


def crm(value: Any) -> Optional[ValidationError]:
    if not value:
        return ValidationError("crm", "CRM é obrigatório")
    if not _matches(_CRM_RE, value):
        return ValidationError("crm", "CRM deve estar no formato 123456/SP")
    return None


# ── Dates ────────────────────────────────────────────────────────────

def parse_appointment_date(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp into an aware datetime.

    Accepts what datetime.fromisoformat accepts on Python 3.11+ (any
    fraction length, trailing "Z"). Naive timestamps are read as UTC.
    Returns None when the value cannot be parsed.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ── Composite validators ─────────────────────────────────────────────

def validate_appointment(data: Mapping[str, Any], now: Optional[datetime] = None) -> List[ValidationError]:
    """
    Validate an appointment creation payload.

    doctor_id, patient_id and appointment_date are each checked for
    presence. Ids must be ints or strings. A present date must parse and
    lie strictly after *now* (the current UTC instant when omitted).
    Optional notes must be text.
    """
    errors: List[ValidationError] = []

    for field, label in (("doctor_id", "Médico"), ("patient_id", "Paciente")):
        value = data.get(field)
        if _is_blank(value):
            errors.append(ValidationError(field, f"{label} é obrigatório"))
        elif not _is_identifier(value):
            errors.append(ValidationError(field, f"{label} inválido"))

    raw_date = data.get("appointment_date")
    if _is_blank(raw_date):
        errors.append(ValidationError("appointment_date", "Data da consulta é obrigatória"))
    else:
        when = parse_appointment_date(raw_date)
        if when is None:
            errors.append(ValidationError("appointment_date", "Data da consulta inválida"))
        else:
            if now is None:
                now = datetime.now(timezone.utc)
            elif now.tzinfo is None:
                now = now.replace(tzinfo=timezone.utc)
            if when <= now:
                errors.append(ValidationError("appointment_date", "Data da consulta deve ser futura"))

    notes = data.get("notes")
    if notes is not None and not isinstance(notes, str):
        errors.append(ValidationError("notes", "Observações inválidas"))

    return errors


def validate_login(data: Mapping[str, Any]) -> List[ValidationError]:
    errors = [email(data.get("email")), password(data.get("password"))]
    return [e for e in errors if e is not None]


def validate_registration(data: Mapping[str, Any]) -> List[ValidationError]:
    """Validate a sign-up payload; doctors additionally need CRM and specialty."""
    checks = [
        email(data.get("email")),
        password(data.get("password")),
        required(data.get("full_name"), "Nome completo"),
        phone(data.get("phone")),
    ]
    if data.get("user_type") == Role.DOCTOR.value:
        checks.append(crm(data.get("crm")))
        checks.append(required(data.get("specialty"), "Especialidade"))
    return [e for e in checks if e is not None]


def validate_document(data: Mapping[str, Any]) -> List[ValidationError]:
    error = required(data.get("document_name"), "Nome do documento")
    return [error] if error else []
