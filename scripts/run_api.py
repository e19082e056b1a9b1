import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

import uvicorn


def main() -> None:
    host = os.environ.get("API_HOST", "0.0.0.0")
    port = int(os.environ.get("API_PORT", "8000"))
    # Handlers are sync and run in the threadpool; scale with workers, not reload.
    workers = int(os.environ.get("API_WORKERS", "1"))
    uvicorn.run("social_auth.api.server:app", host=host, port=port, workers=workers, reload=False)


if __name__ == "__main__":
    main()
