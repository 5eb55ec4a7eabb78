import logging
import os
import time
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler

from . import config
from .classifier import Classification, classify
from .errors import CleanerError
from .executor import DeletionExecutor, ExecutionReport
from .inventory import connect, fetch_snapshot

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FALLBACK_LOG_FILE = os.path.expanduser("~/.docker-image-cleaner.log")


def setup_logging(log_file: str = None, log_level: str = "INFO"):
    """Setup logging with fallback options if main log file is not accessible."""
    numeric_level = getattr(logging, str(log_level).upper(), logging.INFO)
    handlers = []

    for path in filter(None, [log_file, FALLBACK_LOG_FILE]):
        try:
            os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
            handlers.append(RotatingFileHandler(path, maxBytes=10 * 1024 * 1024, backupCount=5))
            break
        except OSError:
            continue

    # Always add console handler for immediate feedback
    console_handler = logging.StreamHandler()
    console_handler.setLevel(numeric_level)
    handlers.append(console_handler)

    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
    return logging.getLogger("docker_image_cleaner")


@dataclass
class CleanupResult:
    classification: Classification
    report: ExecutionReport


def log_decisions(classification: Classification):
    for decision in classification.kept:
        logger.info(f"Skipping {decision.reason} image {decision.image}")
    logger.info(
        f"Classified {len(classification)} images: {len(classification.kept)} kept, "
        f"{len(classification.dangling)} dangling, {len(classification.leaves)} leaf"
    )


def scan_images(cfg: dict, client=None, now=None):
    """Fetch the inventory and classify it. Returns (client, classification)."""
    exclude = config.parse_exclude(cfg.get("exclude"))
    safety_duration = config.parse_duration(cfg.get("safety_duration", "1h"))
    if client is None:
        client = connect(cfg.get("docker_host"))
    snapshot = fetch_snapshot(client)
    classification = classify(
        snapshot.images,
        snapshot.containers,
        exclude=exclude,
        safety_duration=safety_duration,
        now=now,
    )
    return client, classification


def make_executor(cfg: dict, client) -> DeletionExecutor:
    backup_file = cfg.get("backup_file") if cfg.get("backup_enabled", True) else None
    return DeletionExecutor(client, backup_file=backup_file)


def cleanup_images(cfg: dict, client=None, now=None) -> CleanupResult:
    """Performs one image cleanup cycle: fetch, classify, then delete or report.

    Raises InventoryError before anything is deleted if the inventory can't
    be read.
    """
    logger.info("Starting Docker image cleanup cycle.")
    client, classification = scan_images(cfg, client=client, now=now)
    log_decisions(classification)

    if not classification.eligible:
        logger.info("No unused images to delete.")

    executor = make_executor(cfg, client)
    report = executor.execute(
        classification,
        delete_dangling=bool(cfg.get("delete_dangling")),
        delete_leaf=bool(cfg.get("delete_leaf")),
    )
    return CleanupResult(classification=classification, report=report)


def run_daemon(config_file=None, overrides: dict = None, cycles: int = None, sleep=time.sleep):
    """The main loop for the daemon process."""
    logger.info("Docker image cleaner daemon started.")
    done = 0
    while cycles is None or done < cycles:
        cfg = config.load_config(config_file)
        cfg.update(overrides or {})
        try:
            cleanup_images(cfg)
        except CleanerError as e:
            logger.error(f"Cleanup cycle aborted: {e}")
        done += 1
        if cycles is not None and done >= cycles:
            break

        sleep_interval = cfg.get("daemon_sleep_interval_seconds", 86400)
        logger.info(f"Sleeping for {sleep_interval} seconds...")
        sleep(sleep_interval)
