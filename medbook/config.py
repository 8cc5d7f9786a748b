"""
Centralised configuration constants and environment helpers.
"""

import os
import sys

from dotenv import load_dotenv

load_dotenv()

# ── Validation rules ─────────────────────────────────────────────────
MIN_PASSWORD_LENGTH = 6
EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"
PHONE_PATTERN = r"^\(\d{2}\)\s\d{4,5}-\d{4}$"
CRM_PATTERN = r"^\d{4,6}/[A-Z]{2}$"

# ── User-facing messages ─────────────────────────────────────────────
ACCESS_DENIED_MESSAGE = "Acesso negado: permissão insuficiente"
UNAUTHORIZED_MESSAGE = "Não autorizado"
INVALID_CREDENTIALS_MESSAGE = "Credenciais inválidas"
PROFILE_NOT_FOUND_MESSAGE = "Perfil não encontrado"
SLOT_TAKEN_MESSAGE = "Horário não disponível"

# ── Appointments ─────────────────────────────────────────────────────
APPOINTMENT_STATUS_SCHEDULED = "scheduled"
DOCUMENT_URL_TEMPLATE = "/documents/{appointment_id}/{document_name}.pdf"

# ── API server ───────────────────────────────────────────────────────
SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-in-production")
TOKEN_EXPIRY_HOURS = 24


def get_env(name: str) -> str:
    """Return an environment variable or exit with an error message."""
    value = os.getenv(name)
    if not value:
        print(f"ERROR: env var {name} is not set", file=sys.stderr)
        sys.exit(1)
    return value
