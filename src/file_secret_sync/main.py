"""Main application entry point."""

import asyncio
import signal
import sys
from typing import Optional

from kubernetes.config.config_exception import ConfigException

from .config.settings import AppSettings
from .config.loader import (
    ConfigurationError,
    load_settings,
    validate_folder,
    get_current_namespace
)
from .core import SyncEngine, SyncEngineError, WatchLoop
from .stores import BaseSecretStore, SecretStoreError, SecretStoreFactory
from .watcher import BaseNotifier, NotifierError, WatchdogNotifier
from .utils.logging import setup_logging, get_logger


class StartupError(Exception):
    """Raised when the application cannot reach its monitoring state."""
    pass


class FileSecretSyncApp:
    """Main file-to-secret sync application."""

    def __init__(
        self,
        settings: AppSettings,
        store: Optional[BaseSecretStore] = None,
        notifier: Optional[BaseNotifier] = None
    ):
        """Initialize the application.

        Args:
            settings: Application settings
            store: Secret store to use instead of the configured backend
            notifier: Change notifier to use instead of the watchdog observer
        """
        self.settings = settings
        self.logger = get_logger("FileSecretSync")
        self.running = False
        self.shutdown_requested = False
        self.store = store
        self.notifier = notifier
        self.namespace: Optional[str] = None
        self.engine: Optional[SyncEngine] = None
        self.watch_loop: Optional[WatchLoop] = None

    async def startup(self):
        """Validate configuration, run the initial sync and start watching.

        Raises:
            ConfigurationError: If the folder, namespace or credentials are unusable
            StartupError: If watching cannot start, or the initial sync fails
                and ``fail_on_initial_sync_error`` is set
        """
        self.logger.info(
            "Starting File Secret Sync",
            version=self.settings.app_version,
            environment=self.settings.environment
        )

        folder = validate_folder(self.settings.folder_to_read)
        self.namespace = get_current_namespace(self.settings.kube)

        if self.store is None:
            try:
                self.store = SecretStoreFactory.create_store(
                    backend=self.settings.secret_store_backend,
                    kube_settings=self.settings.kube
                )
            except ConfigException as e:
                raise ConfigurationError(f"Failed to load Kubernetes configuration: {e}") from e

        self.engine = SyncEngine(
            store=self.store,
            folder_path=folder,
            namespace=self.namespace,
            secret_name=self.settings.secret_to_write,
            managed_by=self.settings.kube.managed_by
        )

        self.logger.info(
            "Starting file-to-secret sync",
            folder=str(folder),
            secret=self.engine.secret_identity
        )
        await self._initial_sync()

        if self.shutdown_requested:
            self.logger.info("Shutdown requested during initial sync, not starting monitoring")
            return

        if self.notifier is None:
            self.notifier = WatchdogNotifier()
        self.notifier.start()

        self.watch_loop = WatchLoop(
            engine=self.engine,
            notifier=self.notifier,
            root=folder,
            debounce_seconds=self.settings.watch.debounce_seconds,
            resync_interval_seconds=self.settings.watch.resync_interval_seconds
        )
        try:
            self.watch_loop.subscribe()
        except (NotifierError, OSError) as e:
            self.notifier.close()
            raise StartupError(f"Failed to start monitoring: {e}") from e

        self.running = True
        self.logger.info("File Secret Sync started successfully")

    async def _initial_sync(self):
        try:
            result = await self.engine.reconcile_once()
        except (SyncEngineError, SecretStoreError) as e:
            if self.settings.fail_on_initial_sync_error:
                raise StartupError(f"Initial sync failed: {e}") from e
            self.logger.error(
                "Initial sync failed, waiting for changes",
                secret=self.engine.secret_identity,
                error=str(e)
            )
            return

        self.logger.info(
            "Initial sync completed",
            action=result.action.value,
            keys=result.keys
        )

    def request_shutdown(self, signum: Optional[int] = None):
        """Stop watching; the loop exits after any pass in flight."""
        self.logger.info("Received shutdown signal", signal=signum)
        self.shutdown_requested = True
        self.running = False
        if self.notifier is not None:
            self.notifier.close()

    async def shutdown(self):
        """Application shutdown."""
        self.running = False
        if self.notifier is not None and not self.notifier.closed:
            self.notifier.close()

        if self.watch_loop is not None:
            self.logger.info(
                "File Secret Sync stopped",
                passes=self.watch_loop.passes,
                failed_passes=self.watch_loop.failed_passes
            )
        else:
            self.logger.info("File Secret Sync stopped")

    async def run(self):
        """Run until the notifier is closed."""
        await self.startup()

        try:
            if self.watch_loop is not None:
                await self.watch_loop.run()
        finally:
            await self.shutdown()


def setup_signal_handlers(app: FileSecretSyncApp):
    """Set up signal handlers for graceful shutdown."""
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, app.request_shutdown, signum)


async def main(settings: Optional[AppSettings] = None) -> int:
    """Main entry point.

    Returns:
        Process exit status
    """
    try:
        settings = settings or load_settings()
    except ConfigurationError as e:
        setup_logging()
        get_logger("main").error("Invalid configuration", error=str(e))
        return 1

    setup_logging(settings=settings.logging)
    logger = get_logger("main")

    app = FileSecretSyncApp(settings)
    setup_signal_handlers(app)

    try:
        await app.run()
    except (ConfigurationError, StartupError) as e:
        logger.error("Startup failed", error=str(e))
        return 1

    return 0


def cli():
    """Console script entry point."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\nShutdown requested by user")
        sys.exit(0)


if __name__ == "__main__":
    cli()
