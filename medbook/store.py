"""
Data access for profiles, doctors, appointments, documents and notifications.

Route handlers call these only after the caller has been authorised and the
payload validated. Row ownership (which appointments a caller may see) is
applied here through query scoping.
"""

import sys
from datetime import timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.security import check_password_hash, generate_password_hash

from medbook.config import (
    APPOINTMENT_STATUS_SCHEDULED,
    DOCUMENT_URL_TEMPLATE,
    INVALID_CREDENTIALS_MESSAGE,
    SLOT_TAKEN_MESSAGE,
)
from medbook.models import Role, UserProfile
from medbook.validation import parse_appointment_date

_PROFILE_SQL = """
    SELECT p.id, p.email, p.full_name, p.phone, p.user_type, p.password_hash,
           pt.id AS patient_id, d.id AS doctor_id
    FROM profiles p
    LEFT JOIN patients pt ON pt.user_id = p.id
    LEFT JOIN doctors d ON d.user_id = p.id
"""

_APPOINTMENT_SQL = """
    SELECT a.id, a.doctor_id, a.patient_id, a.appointment_date, a.notes, a.status,
           dp.full_name AS doctor_name, d.specialty AS doctor_specialty,
           pp.full_name AS patient_name
    FROM appointments a
    JOIN doctors d ON d.id = a.doctor_id
    JOIN profiles dp ON dp.id = d.user_id
    JOIN patients pt ON pt.id = a.patient_id
    JOIN profiles pp ON pp.id = pt.user_id
"""


def _row_to_profile(row) -> UserProfile:
    return UserProfile(
        id=int(row["id"]),
        email=str(row["email"]),
        full_name=str(row["full_name"]),
        role=Role(str(row["user_type"]).strip().lower()),
        phone=row["phone"],
        patient_id=int(row["patient_id"]) if row["patient_id"] is not None else None,
        doctor_id=int(row["doctor_id"]) if row["doctor_id"] is not None else None,
    )


def _normalise_date(value: Any) -> str:
    """Store timestamps as UTC ISO strings so equality and ordering hold."""
    parsed = parse_appointment_date(value)
    if parsed is None:
        raise ValueError(f"Unparseable appointment_date: {value!r}")
    return parsed.astimezone(timezone.utc).isoformat()


# ── Profiles ─────────────────────────────────────────────────────────

def _fetch_profile_row(engine: Engine, where: str, params: Dict[str, Any]):
    sql = text(_PROFILE_SQL + " WHERE " + where)
    with engine.connect() as conn:
        return conn.execute(sql, params).mappings().first()


def get_profile(engine: Engine, user_id: int) -> Optional[UserProfile]:
    row = _fetch_profile_row(engine, "p.id = :id", {"id": user_id})
    return _row_to_profile(row) if row else None


def get_profile_by_email(engine: Engine, email: str) -> Optional[UserProfile]:
    row = _fetch_profile_row(engine, "p.email = :email", {"email": email.strip().lower()})
    return _row_to_profile(row) if row else None


def authenticate(engine: Engine, email: str, password: str) -> UserProfile:
    """Check an email/password pair and return the matching profile."""
    row = _fetch_profile_row(engine, "p.email = :email", {"email": email.strip().lower()})
    if not row or not check_password_hash(row["password_hash"], password):
        raise ValueError(INVALID_CREDENTIALS_MESSAGE)
    return _row_to_profile(row)


def create_user(
    engine: Engine,
    email: str,
    password: str,
    full_name: str,
    role: Role,
    phone: Optional[str] = None,
    specialty: Optional[str] = None,
    crm: Optional[str] = None,
) -> UserProfile:
    """
    Create a profile plus its role row (patients / doctors).

    The two inserts run in separate transactions; if the role row fails the
    profile is deleted again on a best-effort basis.
    """
    role = Role(role)
    try:
        with engine.begin() as conn:
            result = conn.execute(
                text("""
                    INSERT INTO profiles (email, password_hash, full_name, phone, user_type)
                    VALUES (:email, :password_hash, :full_name, :phone, :user_type)
                """),
                {
                    "email": email.strip().lower(),
                    "password_hash": generate_password_hash(password),
                    "full_name": str(full_name).strip(),
                    "phone": phone or None,
                    "user_type": role.value,
                },
            )
            user_id = int(result.lastrowid)
    except IntegrityError:
        raise ValueError("Email já cadastrado")

    try:
        with engine.begin() as conn:
            if role == Role.PATIENT:
                conn.execute(text("INSERT INTO patients (user_id) VALUES (:u)"), {"u": user_id})
            elif role == Role.DOCTOR:
                conn.execute(
                    text("INSERT INTO doctors (user_id, specialty, crm) VALUES (:u, :s, :c)"),
                    {"u": user_id, "s": str(specialty or "").strip(), "c": crm},
                )
    except SQLAlchemyError as e:
        print(f"[ERROR] Failed to create {role.value} record: {e}", file=sys.stderr)
        _delete_profile(engine, user_id)
        raise ValueError(f"Falha ao criar o registro de {role.value}.")

    print(f"[auth] Created {role.value} account {user_id}")
    return get_profile(engine, user_id)


def _delete_profile(engine: Engine, user_id: int) -> None:
    try:
        with engine.begin() as conn:
            conn.execute(text("DELETE FROM profiles WHERE id = :id"), {"id": user_id})
    except Exception as e:
        print(f"[WARN] Cleanup of profile {user_id} failed: {e}", file=sys.stderr)


# ── Doctors ──────────────────────────────────────────────────────────

def list_doctors(engine: Engine) -> List[Dict[str, Any]]:
    sql = text("""
        SELECT d.id, d.specialty, d.crm, p.full_name, p.email, p.phone
        FROM doctors d
        JOIN profiles p ON p.id = d.user_id
        ORDER BY p.full_name
    """)
    with engine.connect() as conn:
        rows = conn.execute(sql).mappings().all()
    return [
        {
            "id": r["id"],
            "specialty": r["specialty"],
            "crm": r["crm"],
            "profiles": {"full_name": r["full_name"], "email": r["email"], "phone": r["phone"]},
        }
        for r in rows
    ]


# ── Appointments ─────────────────────────────────────────────────────

def _appointment_scope(profile: UserProfile) -> Tuple[str, Dict[str, Any]]:
    """Row-level rule: patients and doctors only see their own appointments."""
    if profile.role == Role.PATIENT:
        return "WHERE a.patient_id = :pid", {"pid": profile.patient_id}
    if profile.role == Role.DOCTOR:
        return "WHERE a.doctor_id = :did", {"did": profile.doctor_id}
    return "", {}


def list_appointments(engine: Engine, profile: UserProfile) -> List[Dict[str, Any]]:
    where, params = _appointment_scope(profile)
    sql = text(_APPOINTMENT_SQL + where + " ORDER BY a.appointment_date")
    with engine.connect() as conn:
        rows = conn.execute(sql, params).mappings().all()
    return [dict(r) for r in rows]


def get_appointment(engine: Engine, appointment_id: int) -> Optional[Dict[str, Any]]:
    sql = text(_APPOINTMENT_SQL + "WHERE a.id = :id")
    with engine.connect() as conn:
        row = conn.execute(sql, {"id": appointment_id}).mappings().first()
    return dict(row) if row else None


def find_conflicting_appointment(engine: Engine, doctor_id: Any, appointment_date: Any) -> Optional[int]:
    """Return the id of a scheduled appointment in the same doctor slot, if any."""
    sql = text("""
        SELECT id FROM appointments
        WHERE doctor_id = :d AND appointment_date = :dt AND status = :status
    """)
    params = {
        "d": doctor_id,
        "dt": _normalise_date(appointment_date),
        "status": APPOINTMENT_STATUS_SCHEDULED,
    }
    with engine.connect() as conn:
        row = conn.execute(sql, params).first()
    return int(row[0]) if row else None


def create_appointment(engine: Engine, data: Dict[str, Any]) -> Dict[str, Any]:
    """Insert a scheduled appointment and notify the patient."""
    when = _normalise_date(data["appointment_date"])
    if not _exists(engine, "doctors", data["doctor_id"]):
        raise ValueError("Médico não encontrado")
    if not _exists(engine, "patients", data["patient_id"]):
        raise ValueError("Paciente não encontrado")

    # ux_appointments_doctor_slot rejects a second scheduled booking of the same slot
    try:
        with engine.begin() as conn:
            result = conn.execute(
                text("""
                    INSERT INTO appointments (doctor_id, patient_id, appointment_date, notes, status)
                    VALUES (:d, :p, :dt, :notes, :status)
                """),
                {
                    "d": data["doctor_id"],
                    "p": data["patient_id"],
                    "dt": when,
                    "notes": data.get("notes"),
                    "status": APPOINTMENT_STATUS_SCHEDULED,
                },
            )
            appointment_id = int(result.lastrowid)
    except IntegrityError:
        raise ValueError(SLOT_TAKEN_MESSAGE)

    appointment = get_appointment(engine, appointment_id)
    patient_user = _patient_user_id(engine, appointment["patient_id"])
    if patient_user is not None:
        when_label = parse_appointment_date(when).strftime("%d/%m/%Y %H:%M")
        add_notification(engine, patient_user, f"Sua consulta para {when_label} foi agendada.")
    return appointment


def _exists(engine: Engine, table: str, row_id: Any) -> bool:
    # table names come from this module only, never from request data
    with engine.connect() as conn:
        row = conn.execute(text(f"SELECT 1 FROM {table} WHERE id = :id"), {"id": row_id}).first()
    return row is not None


def _patient_user_id(engine: Engine, patient_id: int) -> Optional[int]:
    with engine.connect() as conn:
        row = conn.execute(
            text("SELECT user_id FROM patients WHERE id = :id"), {"id": patient_id}
        ).first()
    return int(row[0]) if row else None


# ── Notifications / documents ────────────────────────────────────────

def add_notification(engine: Engine, user_id: int, message: str) -> None:
    with engine.begin() as conn:
        conn.execute(
            text("INSERT INTO notifications (user_id, message) VALUES (:u, :m)"),
            {"u": user_id, "m": message},
        )


def list_notifications(engine: Engine, user_id: int) -> List[Dict[str, Any]]:
    sql = text("""
        SELECT id, message, is_read, created_at FROM notifications
        WHERE user_id = :u ORDER BY id DESC
    """)
    with engine.connect() as conn:
        return [dict(r) for r in conn.execute(sql, {"u": user_id}).mappings().all()]


def add_document(engine: Engine, appointment_id: int, document_name: str, uploaded_by: int) -> Dict[str, Any]:
    """Record a document against an appointment; the file URL is simulated."""
    name = document_name.strip()
    file_url = DOCUMENT_URL_TEMPLATE.format(appointment_id=appointment_id, document_name=name)
    with engine.begin() as conn:
        result = conn.execute(
            text("""
                INSERT INTO documents (appointment_id, file_name, file_url, uploaded_by)
                VALUES (:a, :n, :url, :u)
            """),
            {"a": appointment_id, "n": name, "url": file_url, "u": uploaded_by},
        )
        document_id = int(result.lastrowid)
    return {
        "id": document_id,
        "appointment_id": appointment_id,
        "file_name": name,
        "file_url": file_url,
        "uploaded_by": uploaded_by,
    }
