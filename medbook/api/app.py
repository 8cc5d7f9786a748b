"""
Flask application factory and server entry-point.
"""

import os
import sys
import traceback

from flask import Flask
from flask_cors import CORS

from medbook.config import SECRET_KEY, TOKEN_EXPIRY_HOURS
from medbook.database import init_engine, create_schema
from medbook.permissions import DEFAULT_POLICY
from medbook.api.routes import register_routes


def create_app(engine=None, policy=None):
    """
    Build and return a fully configured Flask application.

    *engine* and *policy* may be injected (tests, alternative role tables);
    otherwise the engine comes from DB_URI and the stock policy is used.
    """
    app = Flask(__name__)
    CORS(app)
    app.config["SECRET_KEY"] = SECRET_KEY
    app.config["POLICY"] = DEFAULT_POLICY if policy is None else policy

    # ── Initialise shared resources ──────────────────────────────────
    try:
        if engine is None:
            print("[init] Initializing database connection...")
            engine = init_engine()
        create_schema(engine)
        print("[init] ✓ API server ready")
    except Exception as e:
        print(f"[FATAL] Failed to initialize: {e}", file=sys.stderr)
        traceback.print_exc()
        sys.exit(1)

    # ── Register routes ──────────────────────────────────────────────
    register_routes(app, engine)

    return app


def main():
    """Run the development server."""
    print("=" * 60)
    print("MedBook – REST API Server")
    print("=" * 60)

    app = create_app()

    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "8000"))
    debug = os.getenv("FLASK_ENV") == "development"

    print(f"\n[server] Starting Flask API on {host}:{port}")
    print(f"[server] Debug mode: {debug}")
    print(f"[server] Session expiry: {TOKEN_EXPIRY_HOURS} hours")
    print("\nAPI Endpoints:")
    print(f"  - POST http://{host}:{port}/api/auth/login")
    print(f"  - POST http://{host}:{port}/api/auth/register")
    print(f"  - POST http://{host}:{port}/api/auth/logout")
    print(f"  - GET  http://{host}:{port}/api/me")
    print(f"  - GET  http://{host}:{port}/api/doctors")
    print(f"  - GET  http://{host}:{port}/api/appointments")
    print(f"  - POST http://{host}:{port}/api/appointments")
    print(f"  - GET  http://{host}:{port}/health")
    print("\n" + "=" * 60)

    app.run(host=host, port=port, debug=debug, threaded=True)


if __name__ == "__main__":
    main()
