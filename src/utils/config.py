"""Configuration loading and validation for the caption store."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from rich.logging import RichHandler

from utils.logging import RunIdFilter

# Get the project root directory (parent of src)
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Load environment variables from .env file in project root
load_dotenv(PROJECT_ROOT / ".env")


def load_config() -> dict:
    """Load configuration from environment variables."""

    # Helper function to resolve paths relative to project root
    def resolve_path(path: str | None, default_relative: str) -> str:
        if not path:
            return str(PROJECT_ROOT / default_relative)
        if Path(path).is_absolute():
            return path
        return str(PROJECT_ROOT / path)

    config = {
        # Storage
        "data_root": resolve_path(os.getenv("DATA_ROOT"), "data"),
        "shard_capacity": int(os.getenv("SHARD_CAPACITY", "1000")),
        "shard_prefix_length": int(os.getenv("SHARD_PREFIX_LENGTH", "2")),
        # Static artifacts
        "api_output_dir": resolve_path(os.getenv("API_OUTPUT_DIR"), "api"),
        "static_base_url": os.getenv("STATIC_BASE_URL"),
        # Work queue (one URL or video id per line)
        "queue_file": resolve_path(os.getenv("QUEUE_FILE"), "urls.txt"),
        # Read API
        "default_page_size": int(os.getenv("DEFAULT_PAGE_SIZE", "50")),
        "max_page_size": int(os.getenv("MAX_PAGE_SIZE", "500")),
        "cors_origins": [
            origin.strip()
            for origin in os.getenv("CORS_ORIGINS", "*").split(",")
            if origin.strip()
        ],
        # Logging
        "log_level": os.getenv("LOG_LEVEL", "INFO"),
        "log_json": os.getenv("LOG_JSON", "false").lower() == "true",
    }

    return config


def validate_config(config: dict) -> list[str]:
    """Validate configuration and return list of errors."""
    errors = []

    if config.get("shard_capacity", 0) < 1:
        errors.append("SHARD_CAPACITY must be a positive integer")

    if not 1 <= config.get("shard_prefix_length", 0) <= 11:
        errors.append("SHARD_PREFIX_LENGTH must be between 1 and 11")

    default_page = config.get("default_page_size", 0)
    max_page = config.get("max_page_size", 0)
    if default_page < 1:
        errors.append("DEFAULT_PAGE_SIZE must be a positive integer")
    if max_page < default_page:
        errors.append("MAX_PAGE_SIZE must be at least DEFAULT_PAGE_SIZE")

    if config.get("log_level", "INFO").upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        errors.append(f"Unknown LOG_LEVEL: {config.get('log_level')}")

    data_root = config.get("data_root")
    if data_root and Path(data_root).exists() and not Path(data_root).is_dir():
        errors.append(f"DATA_ROOT is not a directory: {data_root}")

    return errors


def setup_logging(log_level: str = "INFO") -> None:
    """Set up logging configuration with Rich for terminal output."""
    # Clear any existing handlers
    logging.root.handlers.clear()

    rich_handler = RichHandler(
        show_time=True,
        show_level=True,
        show_path=False,
        rich_tracebacks=True,
        markup=False,  # Disable markup to avoid conflicts
    )
    # Prefix lines logged during a generation or ingestion run with its id
    rich_handler.addFilter(RunIdFilter())

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        handlers=[rich_handler],
        format="%(run_tag)s%(message)s",
    )

    # Suppress noisy third-party loggers
    for logger_name in ["httpx", "urllib3.connectionpool"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)
