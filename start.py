"""Server startup - configures logging and serves the read API with uvicorn."""
import os
import sys
from pathlib import Path

src_dir = Path(__file__).parent / "src"
if str(src_dir) not in sys.path:
    sys.path.insert(0, str(src_dir))

import uvicorn

from utils.config import load_config
from utils.logging import get_logger, setup_logging

config = load_config()
setup_logging(config["log_level"], json_output=config["log_json"])

from api.server import app  # noqa: E402

port = int(os.environ.get("PORT", "3000"))
get_logger(__name__).info("starting caption api", port=port, data_root=config["data_root"])
uvicorn.run(app, host="0.0.0.0", port=port, log_level=config["log_level"].lower())
