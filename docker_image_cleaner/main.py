import logging
from typing import List, Optional

import typer

from . import __version__, cleaner, config
from .errors import ConfigError, InventoryError

logger = logging.getLogger(__name__)

app = typer.Typer(help="Clean up docker images that seem safe to remove.")


def version_callback(value: bool):
    if value:
        typer.echo(__version__)
        raise typer.Exit()


def build_overrides(exclude, delete_dangling, delete_leaf, safety_duration, log_level) -> dict:
    """Command line values that were actually given, keyed like the config file."""
    overrides = {}
    if exclude:
        overrides["exclude"] = config.parse_exclude(exclude)
    if delete_dangling is not None:
        overrides["delete_dangling"] = delete_dangling
    if delete_leaf is not None:
        overrides["delete_leaf"] = delete_leaf
    if safety_duration is not None:
        overrides["safety_duration"] = safety_duration
    if log_level is not None:
        overrides["log_level"] = log_level
    return overrides


@app.command()
def main(
    exclude: Optional[List[str]] = typer.Option(
        None, "--exclude", "-x", metavar="IMAGE:TAG", help="Leaf images to exclude specified by image:tag."
    ),
    delete_dangling: Optional[bool] = typer.Option(
        None, "--delete-dangling/--no-delete-dangling", help="Delete dangling images."
    ),
    delete_leaf: Optional[bool] = typer.Option(
        None, "--delete-leaf/--no-delete-leaf", help="Delete leaf images."
    ),
    safety_duration: Optional[str] = typer.Option(
        None, "--safety-duration", "-d", metavar="DUR", help="Don't delete any images created in the last DUR time (30m, 1h, 24h)."
    ),
    config_file: Optional[str] = typer.Option(None, "--config", help="Path to the JSON config file."),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level, e.g. INFO or DEBUG."),
    is_daemon: bool = typer.Option(False, "--daemon", help="Run the cleanup repeatedly as a background daemon."),
    review: bool = typer.Option(False, "--review", help="Review the classification in an interactive TUI."),
    version: bool = typer.Option(
        False, "--version", callback=version_callback, is_eager=True, help="Show the version and exit."
    ),
):
    """Classify local images and delete the ones nothing needs.

    Without --delete-dangling / --delete-leaf this is a dry run.
    """
    overrides = build_overrides(exclude, delete_dangling, delete_leaf, safety_duration, log_level)
    cfg = config.load_config(config_file)
    cfg.update(overrides)
    cleaner.setup_logging(cfg.get("log_file"), cfg.get("log_level", "INFO"))

    try:
        config.parse_duration(cfg.get("safety_duration", "1h"))
        if is_daemon:
            cleaner.run_daemon(config_file, overrides)
        elif review:
            run_review(cfg)
        else:
            result = cleaner.cleanup_images(cfg)
            if result.report.failures:
                logger.warning(f"{len(result.report.failures)} image removal(s) failed")
    except (InventoryError, ConfigError) as e:
        logger.error(str(e))
        raise typer.Exit(code=1)


def run_review(cfg: dict):
    from .tui import ReviewApp

    client, classification = cleaner.scan_images(cfg)
    review_app = ReviewApp(
        classification,
        cleaner.make_executor(cfg, client),
        delete_dangling=bool(cfg.get("delete_dangling")),
        delete_leaf=bool(cfg.get("delete_leaf")),
    )
    review_app.run()


if __name__ == "__main__":
    app()
