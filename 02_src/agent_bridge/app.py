"""Application bootstrap and lifecycle management."""

from typing import Protocol

from .config import Settings, resolve_db_path
from .dedup import MessageDedup
from .feishu import FeishuClient, FeishuGateway
from .logging_config import get_logger
from .orchestrator import ConversationOrchestrator
from .presenter import IRenderSink
from .providers import IFileSender, ProviderSelector
from .storage import IStorage, Storage
from .tracker import ITracker, Tracker

logger = get_logger(__name__)

STARTUP_MESSAGE = "✅ Bot started\n\nWorkspace: `{workspace}`"


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    @property
    def settings(self) -> Settings: ...

    @property
    def storage(self) -> IStorage: ...

    @property
    def orchestrator(self) -> ConversationOrchestrator: ...

    @property
    def gateway(self) -> FeishuGateway: ...


class Application:
    """Main application bootstrap.

    `sink` and `selector` replace the Feishu client and the default provider
    selector; tests pass in-memory versions of both.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        db_path: str | None = None,
        sink: IRenderSink | None = None,
        selector: ProviderSelector | None = None,
    ):
        self._settings = settings or Settings.from_env()
        env_db_path = self._settings.database_url if db_path is None else db_path
        self._db_path = resolve_db_path(env_db_path)
        self._sink_override = sink
        self._selector_override = selector

        # Components (will be initialized in start())
        self._storage: IStorage | None = None
        self._tracker: ITracker | None = None
        self._client: FeishuClient | None = None
        self._sink: IRenderSink | None = None
        self._selector: ProviderSelector | None = None
        self._orchestrator: ConversationOrchestrator | None = None
        self._gateway: FeishuGateway | None = None

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")

        # 1. Storage (no dependencies)
        self._storage = Storage(self._db_path)
        await self._storage.init()
        logger.info("Storage initialized")

        # 2. Tracker (depends on Storage)
        self._tracker = Tracker(self._storage)

        # 3. Render sink: the Feishu client unless one was injected
        if self._sink_override is not None:
            self._sink = self._sink_override
        else:
            self._client = FeishuClient(
                self._settings.feishu_app_id,
                self._settings.feishu_app_secret,
                base_url=self._settings.feishu_base_url,
            )
            self._sink = self._client
        logger.info("Render sink initialized")

        # 4. Provider selector
        self._selector = self._selector_override or ProviderSelector(self._settings)

        # 5. Orchestrator (depends on selector, sink, tracker)
        file_sender: IFileSender | None = self._client
        if file_sender is None and hasattr(self._sink, "send_file"):
            file_sender = self._sink  # type: ignore[assignment]
        self._orchestrator = ConversationOrchestrator(
            selector=self._selector,
            sink=self._sink,
            tracker=self._tracker,
            provider_name=self._settings.ai_provider,
            dedup=MessageDedup(),
            file_sender=file_sender,
        )
        logger.info(f"Orchestrator initialized with provider {self._settings.ai_provider}")

        # 6. Gateway (depends on orchestrator)
        self._gateway = FeishuGateway(
            self._orchestrator,
            self._sink,
            verification_token=self._settings.feishu_verification_token,
        )
        logger.info("All components initialized successfully")

        if self._settings.notify_target:
            await self._send_startup_notification()

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        if self._gateway:
            await self._gateway.drain()
        if self._client:
            await self._client.close()
        if self._storage:
            await self._storage.close()
            logger.info("Storage closed")

    async def _send_startup_notification(self) -> None:
        target = self._settings.notify_target
        logger.info(f"Sending startup notification to {target}")
        try:
            await self._sink.create_card(
                target,
                self._orchestrator.display_name,
                STARTUP_MESSAGE.format(workspace=self._settings.workspace),
            )
        except Exception as e:
            logger.error(f"Startup notification failed: {e}", exc_info=True)

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def storage(self) -> IStorage:
        """Get storage instance."""
        if not self._storage:
            raise RuntimeError("Application not started")
        return self._storage

    @property
    def orchestrator(self) -> ConversationOrchestrator:
        """Get orchestrator instance."""
        if not self._orchestrator:
            raise RuntimeError("Application not started")
        return self._orchestrator

    @property
    def gateway(self) -> FeishuGateway:
        """Get gateway instance."""
        if not self._gateway:
            raise RuntimeError("Application not started")
        return self._gateway
