import os
import tempfile

# Keep test runs from writing into ./logs and from picking up a developer's .env profile
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="apisign-logs-"))
os.environ["ENVIRONMENT"] = "test"
