"""
Runner auth configuration. Every value can be overridden from the environment.
No secrets in this file; credentials come from env or DB.
"""
import os

# Issuer URL, stamped into every token as `iss`
ISSUER = os.environ.get("RUNNER_ISSUER", "http://127.0.0.1:5000").rstrip("/")

# SQLite by default; any SQLAlchemy URL works
DATABASE_URL = os.environ.get("RUNNER_DATABASE_URL", "sqlite:///./runner_auth.db")

# Authorization code lifetime (seconds)
CODE_TTL_SECONDS = int(os.environ.get("RUNNER_CODE_TTL_SECONDS", "600"))

# Access token lifetime (seconds). Default one day.
ACCESS_TOKEN_EXPIRES = int(os.environ.get("RUNNER_ACCESS_TOKEN_EXPIRES", "86400"))

# Refresh token lifetime (seconds). Default thirty days.
REFRESH_TOKEN_EXPIRES = int(os.environ.get("RUNNER_REFRESH_TOKEN_EXPIRES", str(30 * 86400)))

# RSA private key PEM used to sign tokens; generated on first start if missing
SIGNING_KEY_PATH = os.environ.get("RUNNER_SIGNING_KEY_PATH", ".runner_signing_key.pem")
# Previous key kept in the key set so tokens signed before a rotation still verify
SIGNING_KEY_PREVIOUS_PATH = os.environ.get("RUNNER_SIGNING_KEY_PREVIOUS_PATH", "").strip() or None

# "server" enables the auth and user routes; any other value is desktop mode
MODE = os.environ.get("MODE", "server").strip()

# Per-IP requests per minute; 0 disables the limit
RATE_LIMIT_AUTHORIZE_PER_MINUTE = int(os.environ.get("RUNNER_RATE_LIMIT_AUTHORIZE_PER_MINUTE", "20"))
RATE_LIMIT_TOKEN_PER_MINUTE = int(os.environ.get("RUNNER_RATE_LIMIT_TOKEN_PER_MINUTE", "60"))

# Public client registered on startup for the bundled web front-end; empty disables
DEFAULT_CLIENT_ID = os.environ.get("RUNNER_DEFAULT_CLIENT_ID", "runner-web").strip()
