"""Application bootstrap for nanocd.

Wires all components in dependency order and manages the asyncio lifecycle.
Startup order: settings → logging → policy file → K8s client → registry
              → notifications → reconciler → scheduler → REST

Shutdown is graceful: the scheduler stops ticking, the running cycle
finishes the workloads it already started, then components are stopped in
reverse startup order. Each component's stop error is caught and logged
independently.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING, Any

from nanocd.config import load_policy, load_settings
from nanocd.errors import ConfigInvalid
from nanocd.models.config import NanoCDSettings, PolicyConfig
from nanocd.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog

_SHUTDOWN_GRACE_SECONDS = 30


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class NanoCDApp:
    """Application root. Owns every component and coordinates their lifecycle.

    ``stop()`` is safe to call on an app that was never started or is
    already stopped.
    """

    def __init__(self, settings: NanoCDSettings | None = None) -> None:
        self.settings: NanoCDSettings | None = settings
        self.policy: PolicyConfig | None = None

        self._workloads: Any = None
        self._registry: Any = None
        self._notifier: Any = None
        self._reconciler: Any = None
        self._scheduler: Any = None
        self._rest_server: Any = None

        # Background tasks that must be cancelled on shutdown
        self._background_tasks: list[asyncio.Task[Any]] = []

        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    @property
    def running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises ConfigInvalid for a bad environment or policy file and
        _ComponentError if a mandatory component cannot start.
        """
        # --- 1. Settings ------------------------------------------------
        if self.settings is None:
            self.settings = load_settings()

        # --- 2. Logging -------------------------------------------------
        setup_logging(self.settings.log.level, self.settings.log.format)
        self._log = get_logger("app")
        self._log.info("nanocd starting", version=_nanocd_version())

        # --- 3. Policy file ---------------------------------------------
        self.policy = load_policy(self.settings.config_path)
        self._log.info(
            "policy loaded",
            path=self.settings.config_path,
            namespaces=len(self.policy.namespaces),
            refresh_interval_seconds=self.policy.refresh_interval_seconds,
        )

        # --- 4. Kubernetes client ----------------------------------------
        await self._start_workloads()

        # --- 5. Registry client -----------------------------------------
        await self._start_registry()

        # --- 6. Notifications -------------------------------------------
        await self._start_notifications()

        # --- 7. Reconciler + scheduler -----------------------------------
        await self._start_scheduler()

        # --- 8. REST API ------------------------------------------------
        await self._start_rest()

        self._running = True
        self._log.info("nanocd started", dry_run=self.settings.reconciler.dry_run)

    # ------------------------------------------------------------------
    # Component startup helpers
    # ------------------------------------------------------------------

    async def _start_workloads(self) -> None:
        """Initialise the kubernetes-asyncio client from in-cluster config or kubeconfig."""
        assert self._log is not None
        assert self.settings is not None
        self._log.debug("starting k8s client")
        try:
            from nanocd.workloads import KubernetesWorkloadAccessor, create_api_client

            api_client = await create_api_client()
            self._workloads = KubernetesWorkloadAccessor(
                api_client=api_client,
                request_timeout=self.settings.reconciler.request_timeout_seconds,
            )
        except Exception as exc:
            raise _ComponentError("k8s_client", exc) from exc

    async def _start_registry(self) -> None:
        assert self._log is not None
        assert self.settings is not None
        self._log.debug("starting registry client")
        try:
            from nanocd.registry import RegistryTagProvider

            self._registry = RegistryTagProvider(
                timeout=self.settings.registry.timeout_seconds,
                max_pages=self.settings.registry.max_pages,
            )
        except Exception as exc:
            raise _ComponentError("registry", exc) from exc

    async def _start_notifications(self) -> None:
        """Configure the webhook sink, or a null sink when no namespace wants one."""
        assert self._log is not None
        assert self.settings is not None
        assert self.policy is not None
        from nanocd.notifications import NullNotificationSink, WebhookNotificationSink

        targets = [ns.name for ns in self.policy.namespaces.values() if ns.notification_url]
        if not targets:
            self._notifier = NullNotificationSink()
            self._log.info("no notification targets configured")
            return
        try:
            self._notifier = WebhookNotificationSink(timeout=self.settings.reconciler.request_timeout_seconds)
            self._log.info("notifications started", namespaces=targets)
        except Exception as exc:
            # Notification failure is non-fatal: patches still apply, nobody hears about them
            self._log.warning(
                "notification sink failed to start; notifications will be dropped",
                error=str(exc),
            )
            self._notifier = NullNotificationSink()

    async def _start_scheduler(self) -> None:
        assert self._log is not None
        assert self.settings is not None
        assert self.policy is not None
        try:
            from nanocd.reconciler import Reconciler
            from nanocd.scheduler import CycleScheduler

            reconciler = Reconciler(
                policy=self.policy,
                workloads=self._workloads,
                tag_provider=self._registry,
                notifier=self._notifier,
                max_concurrency=self.settings.reconciler.max_concurrency,
                dry_run=self.settings.reconciler.dry_run,
            )
            scheduler = CycleScheduler(
                run_cycle=reconciler.run_cycle,
                interval_seconds=self.policy.refresh_interval_seconds,
                on_start=reconciler.resume,
                on_stop=reconciler.request_stop,
                shutdown_grace=_SHUTDOWN_GRACE_SECONDS,
            )
            await scheduler.start()
            self._reconciler = reconciler
            self._scheduler = scheduler
        except Exception as exc:
            raise _ComponentError("scheduler", exc) from exc

    async def _start_rest(self) -> None:
        """Start the uvicorn server for the status API."""
        assert self._log is not None
        assert self.settings is not None
        if not self.settings.api.enabled:
            self._log.info("rest api disabled")
            return
        self._log.debug("starting rest api")
        try:
            import uvicorn

            from nanocd.api import create_app

            fastapi_app = create_app(scheduler=self._scheduler)
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host="0.0.0.0",
                port=self.settings.api.port,
                log_config=None,  # structlog handles all logging
                access_log=False,
            )
            server = uvicorn.Server(uv_config)
            task = asyncio.create_task(server.serve(), name="rest-server")
            self._background_tasks.append(task)
            self._rest_server = server
            self._log.info("rest api started", port=self.settings.api.port)
        except Exception as exc:
            raise _ComponentError("rest", exc) from exc

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Gracefully stop all components in reverse startup order."""
        if not self._running and self._log is None:
            # Never started, nothing to do
            return

        log = self._log or get_logger("app")
        log.info("nanocd shutting down")

        self._running = False

        # The scheduler goes first so no new cycle starts while the rest
        # of the stack is torn down.
        if self._scheduler is not None:
            try:
                await self._scheduler.stop()
            except Exception as exc:
                log.error("component stop raised an error", component="scheduler", error=str(exc))
            self._scheduler = None

        if self._rest_server is not None:
            self._rest_server.should_exit = True
        if self._background_tasks:
            _done, pending = await asyncio.wait(self._background_tasks, timeout=_SHUTDOWN_GRACE_SECONDS)
            for task in pending:
                task.cancel()
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
        self._background_tasks.clear()
        self._rest_server = None

        await self._stop_component("notifications", self._notifier)
        await self._stop_component("registry", self._registry)
        await self._stop_component("k8s_client", self._workloads)
        self._notifier = self._registry = self._workloads = self._reconciler = None

        log.info("nanocd stopped")

    async def _stop_component(self, name: str, component: object | None) -> None:
        """Call close() on a component if it has that method, catching all errors."""
        if component is None:
            return
        log = self._log or get_logger("app")
        close_fn = getattr(component, "close", None)
        if close_fn is None:
            return
        try:
            result = close_fn()
            if asyncio.iscoroutine(result):
                await asyncio.wait_for(result, timeout=_SHUTDOWN_GRACE_SECONDS)
        except TimeoutError:
            log.warning("component stop timed out", component=name, timeout=_SHUTDOWN_GRACE_SECONDS)
        except Exception as exc:
            log.error("component stop raised an error", component=name, error=str(exc))


def _nanocd_version() -> str:
    from nanocd import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main() -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    app = NanoCDApp()
    loop = asyncio.get_running_loop()
    shutdown = asyncio.Event()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, shutdown.set)

    try:
        await app.start()
        await shutdown.wait()
    except ConfigInvalid as exc:
        log = get_logger("app")
        log.critical("invalid configuration", path=exc.path, error=exc.message)
        await app.stop()
        raise SystemExit(2) from exc
    except _ComponentError as exc:
        # A mandatory component failed; log and exit non-zero
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        await app.stop()
        raise SystemExit(1) from exc
    finally:
        # Ensure stop runs even if start raises or is interrupted
        if app.running:
            await app.stop()
