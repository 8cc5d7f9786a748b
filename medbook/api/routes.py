"""
Flask route handlers for the REST API.

Every mutating handler follows the same order: resolve the caller, check the
permission, validate the body, then touch the store.
"""

import sys
import traceback
from datetime import timedelta

from flask import current_app, request, jsonify

from medbook import store
from medbook.config import (
    ACCESS_DENIED_MESSAGE,
    PROFILE_NOT_FOUND_MESSAGE,
    SLOT_TAKEN_MESSAGE,
    TOKEN_EXPIRY_HOURS,
)
from medbook.models import Action, Resource, Role
from medbook.permissions import AuthorizationError
from medbook.validation import (
    validate_appointment,
    validate_document,
    validate_login,
    validate_registration,
)
from medbook.api.auth import (
    sessions,
    cleanup_expired_sessions,
    open_session,
    token_required,
    utc_now,
)

INTERNAL_ERROR_MESSAGE = "Erro interno do servidor"


def _errors_response(errors):
    return jsonify({"errors": [e.to_dict() for e in errors]}), 400


def _json_body():
    """Return the request's JSON object, or None if the body is not JSON."""
    if not request.is_json:
        return None
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


def _require(profile, resource: Resource, action: Action) -> None:
    current_app.config["POLICY"].require_permission(profile.role, resource, action)


def register_routes(app, engine):
    """Register all API routes on the Flask *app*."""

    def current_profile():
        return store.get_profile(engine, request.session_data["user_id"])

    # ── Health / info ────────────────────────────────────────────────

    @app.route("/", methods=["GET"])
    def index():
        return jsonify({
            "service": "MedBook API",
            "version": "1.0.0",
            "status": "running",
            "endpoints": {
                "login": "/api/auth/login",
                "register": "/api/auth/register",
                "logout": "/api/auth/logout",
                "me": "/api/me",
                "doctors": "/api/doctors",
                "appointments": "/api/appointments",
                "notifications": "/api/notifications",
                "health": "/health",
            },
        })

    @app.route("/health", methods=["GET"])
    def health():
        from sqlalchemy import text as sa_text

        checks = {"database": False}
        try:
            with engine.connect() as conn:
                conn.execute(sa_text("SELECT 1"))
            checks["database"] = True
        except Exception as e:
            print(f"[WARN] Health check: database unavailable: {e}", file=sys.stderr)

        all_healthy = all(checks.values())
        return jsonify({
            "status": "healthy" if all_healthy else "unhealthy",
            "checks": checks,
            "active_sessions": len(sessions),
        }), 200 if all_healthy else 503

    # ── Auth ─────────────────────────────────────────────────────────

    @app.route("/api/auth/login", methods=["POST"])
    def login():
        data = _json_body()
        if data is None:
            return jsonify({"error": "Content-Type deve ser application/json"}), 400

        errors = validate_login(data)
        if errors:
            return _errors_response(errors)

        try:
            profile = store.authenticate(engine, data["email"], data["password"])
        except ValueError as e:
            return jsonify({"error": str(e)}), 401

        cleanup_expired_sessions()
        token = open_session(profile)
        print(f"[auth] Login: user {profile.id} ({profile.role.value})")

        return jsonify({
            "message": "Login realizado com sucesso",
            "token": token,
            "user": profile.to_dict(),
            "expires_at": (utc_now() + timedelta(hours=TOKEN_EXPIRY_HOURS)).isoformat(),
        }), 200

    @app.route("/api/auth/register", methods=["POST"])
    def register():
        data = _json_body()
        if data is None:
            return jsonify({"error": "Content-Type deve ser application/json"}), 400

        # Self-registration always creates a patient account.
        data = dict(data, user_type=Role.PATIENT.value)
        errors = validate_registration(data)
        if errors:
            return _errors_response(errors)

        try:
            profile = store.create_user(
                engine,
                email=data["email"],
                password=data["password"],
                full_name=data["full_name"],
                role=Role.PATIENT,
                phone=data.get("phone"),
            )
        except ValueError as e:
            return jsonify({"error": str(e)}), 400

        return jsonify({
            "message": "Usuário registrado com sucesso!",
            "user": profile.to_dict(),
        }), 200

    @app.route("/api/auth/logout", methods=["POST"])
    @token_required
    def logout():
        sessions.pop(request.token, None)
        return jsonify({"message": "Logout realizado com sucesso"}), 200

    @app.route("/api/me", methods=["GET"])
    @token_required
    def me():
        profile = current_profile()
        if profile is None:
            return jsonify({"error": PROFILE_NOT_FOUND_MESSAGE}), 404
        return jsonify({"user": profile.to_dict()}), 200

    # ── Doctors ──────────────────────────────────────────────────────

    @app.route("/api/doctors", methods=["GET"])
    @token_required
    def get_doctors():
        # Any authenticated user may browse the doctor listing.
        try:
            doctors = store.list_doctors(engine)
        except Exception as e:
            print(f"[ERROR] Fetching doctors failed: {e}", file=sys.stderr)
            traceback.print_exc()
            return jsonify({"error": "Erro de banco de dados ao buscar médicos."}), 500
        return jsonify({"doctors": doctors}), 200

    @app.route("/api/doctors", methods=["POST"])
    @token_required
    def create_doctor():
        profile = current_profile()
        if profile is None:
            return jsonify({"error": PROFILE_NOT_FOUND_MESSAGE}), 404
        _require(profile, Resource.DOCTORS, Action.CREATE)

        data = _json_body()
        if data is None:
            return jsonify({"error": "Content-Type deve ser application/json"}), 400

        data = dict(data, user_type=Role.DOCTOR.value)
        errors = validate_registration(data)
        if errors:
            return _errors_response(errors)

        try:
            doctor = store.create_user(
                engine,
                email=data["email"],
                password=data["password"],
                full_name=data["full_name"],
                role=Role.DOCTOR,
                phone=data.get("phone"),
                specialty=data["specialty"],
                crm=data["crm"],
            )
        except ValueError as e:
            return jsonify({"error": str(e)}), 400

        return jsonify({"message": "Médico cadastrado com sucesso", "user": doctor.to_dict()}), 200

    # ── Appointments ─────────────────────────────────────────────────

    @app.route("/api/appointments", methods=["GET"])
    @token_required
    def get_appointments():
        profile = current_profile()
        if profile is None:
            return jsonify({"error": PROFILE_NOT_FOUND_MESSAGE}), 404
        _require(profile, Resource.APPOINTMENTS, Action.READ)

        return jsonify({"appointments": store.list_appointments(engine, profile)}), 200

    @app.route("/api/appointments", methods=["POST"])
    @token_required
    def create_appointment():
        profile = current_profile()
        if profile is None:
            return jsonify({"error": PROFILE_NOT_FOUND_MESSAGE}), 404
        _require(profile, Resource.APPOINTMENTS, Action.CREATE)

        data = _json_body()
        if data is None:
            return jsonify({"error": "Content-Type deve ser application/json"}), 400
        data = dict(data)

        if profile.role == Role.PATIENT:
            if profile.patient_id is None:
                return jsonify({
                    "error": "Perfil de paciente não encontrado. O cadastro do usuário pode estar incompleto."
                }), 404
            data["patient_id"] = profile.patient_id

        errors = validate_appointment(data)
        if errors:
            return _errors_response(errors)

        try:
            if store.find_conflicting_appointment(engine, data["doctor_id"], data["appointment_date"]):
                return jsonify({"error": SLOT_TAKEN_MESSAGE}), 400
            appointment = store.create_appointment(engine, data)
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
        except Exception as e:
            print(f"[ERROR] Appointment creation failed: {e}", file=sys.stderr)
            traceback.print_exc()
            return jsonify({"error": INTERNAL_ERROR_MESSAGE}), 500

        return jsonify({
            "message": "Consulta agendada com sucesso",
            "appointment": appointment,
        }), 200

    @app.route("/api/appointments/<int:appointment_id>/documents", methods=["POST"])
    @token_required
    def add_document(appointment_id):
        profile = current_profile()
        if profile is None:
            return jsonify({"error": PROFILE_NOT_FOUND_MESSAGE}), 404
        _require(profile, Resource.DOCUMENTS, Action.CREATE)

        data = _json_body()
        if data is None:
            return jsonify({"error": "Content-Type deve ser application/json"}), 400

        errors = validate_document(data)
        if errors:
            return _errors_response(errors)

        appointment = store.get_appointment(engine, appointment_id)
        if appointment is None:
            return jsonify({"error": "Consulta não encontrada"}), 404
        if profile.role == Role.DOCTOR and appointment["doctor_id"] != profile.doctor_id:
            raise AuthorizationError()

        document = store.add_document(engine, appointment_id, data["document_name"], profile.id)
        return jsonify({"message": "Documento adicionado", "document": document}), 200

    # ── Notifications ────────────────────────────────────────────────

    @app.route("/api/notifications", methods=["GET"])
    @token_required
    def get_notifications():
        return jsonify({
            "notifications": store.list_notifications(engine, request.session_data["user_id"]),
        }), 200

    # ── Error handlers ───────────────────────────────────────────────

    @app.errorhandler(AuthorizationError)
    def forbidden(e):
        return jsonify({"error": ACCESS_DENIED_MESSAGE}), 403

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Endpoint not found", "message": str(e)}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed", "message": str(e)}), 405

    @app.errorhandler(500)
    def internal_error(e):
        return jsonify({"error": INTERNAL_ERROR_MESSAGE}), 500
