"""Azure Dao: dev launcher. Serves the game API with uvicorn."""

import argparse
import logging
import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = os.getenv("PORT", "13013")


def main():
    parser = argparse.ArgumentParser(description="Azure Dao dev launcher")
    parser.add_argument("--offline", action="store_true",
                        help="Ignore API_KEY and run the narrative offline")
    parser.add_argument("--reload", action="store_true",
                        help="Restart the server when source files change")
    parser.add_argument("--log-level", default="info",
                        help="Logging level (default: info)")
    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # The app factory reads the key from the env at import time
    if args.offline:
        os.environ["API_KEY"] = ""
        os.environ["GEMINI_API_KEY"] = ""

    print(f"Starting Azure Dao on http://localhost:{PORT} ...")
    uvicorn.run(
        "azure_dao.app:app",
        host=HOST,
        port=int(PORT),
        reload=args.reload,
        log_level=args.log_level.lower(),
    )


if __name__ == "__main__":
    main()
