"""
Pytest configuration for runner_auth. In-memory SQLite and a throwaway signing
key so tests don't touch the working directory.
"""
import os
import tempfile

# Must be set before runner_auth.config is imported
os.environ["RUNNER_DATABASE_URL"] = "sqlite:///:memory:"
os.environ["RUNNER_SIGNING_KEY_PATH"] = os.path.join(tempfile.gettempdir(), "runner_auth_test_signing_key.pem")
os.environ["RUNNER_RATE_LIMIT_AUTHORIZE_PER_MINUTE"] = "0"
os.environ["RUNNER_RATE_LIMIT_TOKEN_PER_MINUTE"] = "0"
os.environ["MODE"] = "server"
for var in ("RUNNER_SEED_USER", "RUNNER_SEED_PASSWORD", "RUNNER_SEED_CLIENT_ID", "RUNNER_SEED_CLIENT_SECRET"):
    os.environ.pop(var, None)
