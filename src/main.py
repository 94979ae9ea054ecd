import logging
import signal
import sys
from typing import Optional

from app_config import AppConfigurationError, load_app_config, resolve_config_path
from focus import FocusTimer, SessionType, SnapshotStore
from ledger import FocusRepository, LedgerError
from notifications import NotificationService
from runtime import RuntimeBootstrap, RuntimeEngine
from scheduler import DeferredJobScheduler, JobStore, SchedulerError
from server import ServerConfigurationError, UIServer, UIServerConfig


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """Configure logging for the application."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    return logging.getLogger("focus_app")


def setup_signal_handlers(engine: RuntimeEngine, logger: logging.Logger) -> None:
    """Stop the runtime loop gracefully on SIGTERM and SIGINT."""

    def signal_handler(signum: int, frame) -> None:
        del frame
        logger.info("%s received, stopping...", signal.Signals(signum).name)
        engine.stop()

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)


def main(argv: Optional[list[str]] = None) -> int:
    """Run the focus timer service."""
    logger = setup_logging(level=logging.INFO)
    args = sys.argv[1:] if argv is None else argv

    try:
        config_path = resolve_config_path(args[0] if args else None)
        app_config = load_app_config(str(config_path))
        logger.info("Loaded runtime config: %s", config_path)
    except AppConfigurationError as error:
        logger.error("App configuration error: %s", error)
        return 1

    storage = app_config.storage
    try:
        repository = FocusRepository(
            storage.database_file,
            logger=logging.getLogger("ledger"),
        )
        scheduler = DeferredJobScheduler(
            JobStore(storage.database_file),
            poll_interval_seconds=app_config.scheduler.poll_interval_seconds,
            max_attempts=app_config.scheduler.max_attempts,
            retry_delay_seconds=app_config.scheduler.retry_delay_seconds,
            logger=logging.getLogger("scheduler"),
        )
    except (LedgerError, SchedulerError) as error:
        logger.error("Storage initialization error: %s", error)
        return 1

    timer = FocusTimer(
        snapshot_store=SnapshotStore(
            storage.snapshot_file,
            logger=logging.getLogger("focus.snapshot"),
        ),
        scheduler=scheduler,
        session_type=SessionType(app_config.timer.default_session_type),
        logger=logging.getLogger("focus.timer"),
    )

    # Optional UI server for static page, websocket updates and commands
    ui_server: Optional[UIServer] = None
    ui_server_config: Optional[UIServerConfig] = None
    try:
        ui_server_config = UIServerConfig.from_settings(app_config.ui_server)
    except ServerConfigurationError as error:
        logger.error("UI server configuration error: %s", error)
        logger.warning("Continuing without UI server.")

    if ui_server_config and ui_server_config.enabled:
        ui_server = UIServer(
            config=ui_server_config,
            logger=logging.getLogger("ui_server"),
        )

    notifier = NotificationService(
        ui_server,
        enabled=app_config.notifications.enabled,
        logger=logging.getLogger("notifications"),
    )

    engine = RuntimeEngine(
        RuntimeBootstrap(
            logger=logging.getLogger("runtime"),
            app_config=app_config,
            timer=timer,
            scheduler=scheduler,
            repository=repository,
            notifier=notifier,
            ui_server=ui_server,
        )
    )

    if ui_server is not None:
        ui_server.set_command_handler(engine.submit_command)
        try:
            logger.info("Starting UI server...")
            ui_server.start(timeout_seconds=5.0)
            logger.info("UI server ready at http://%s:%d", ui_server.host, ui_server.port)
        except RuntimeError as error:
            logger.error("UI server failed to start: %s", error)
            logger.warning("Continuing without UI server.")

    setup_signal_handlers(engine, logger)
    return engine.run()


if __name__ == "__main__":
    sys.exit(main())
