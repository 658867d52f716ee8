from dotenv import load_dotenv

from apisign.app import create_app

load_dotenv()

# uvicorn target; fails at import time when production has no signing key
app = create_app()
