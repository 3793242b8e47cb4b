"""
Gateway application state.

WHAT: Data service client, auth, negotiation screens and services of one gateway instance
WHY: Endpoints receive their collaborators explicitly instead of reaching for module globals
HOW: AppState built once in the lifespan, stored on app.state, injected with Depends(get_app_state)
"""

from dataclasses import dataclass

from fastapi import Request

from .config import Settings, settings as default_settings
from .session_store import SessionTokenStore
from ..dataservice.auth import AuthService
from ..dataservice.provider import DataService
from ..dataservice.supabase import SupabaseDataService
from ..negotiation.realtime import RealtimeSyncAdapter
from ..negotiation.sessions import NegotiationSessions
from ..services.catalog import CatalogService
from ..services.chats import ChatService
from ..services.inventory import InventoryService
from ..services.seller_dashboard import SellerDashboardService
from ..services.wallet import WalletService
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class AppState:
    """Everything a request handler may need."""
    settings: Settings
    data_service: DataService
    auth: AuthService | None
    sessions: NegotiationSessions
    catalog: CatalogService
    chats: ChatService
    inventory: InventoryService
    wallet: WalletService
    dashboard: SellerDashboardService

    @classmethod
    def create(cls, config: Settings | None = None) -> "AppState":
        """Build the production state against the configured backend."""
        config = config or default_settings
        data_service = SupabaseDataService(
            config.SUPABASE_URL,
            config.SUPABASE_ANON_KEY,
            timeout=config.DATA_SERVICE_TIMEOUT,
            max_retries=config.DATA_SERVICE_MAX_RETRIES,
            retry_delay=config.DATA_SERVICE_RETRY_DELAY,
        )
        auth = AuthService(data_service, SessionTokenStore())
        return cls.from_data_service(data_service, auth=auth, config=config)

    @classmethod
    def from_data_service(
        cls,
        data_service: DataService,
        *,
        auth: AuthService | None = None,
        config: Settings | None = None
    ) -> "AppState":
        """Wire services around an existing data service (tests inject a fake here)."""
        config = config or default_settings
        adapter = RealtimeSyncAdapter(
            data_service,
            max_reconnect_attempts=config.REALTIME_MAX_RECONNECT_ATTEMPTS,
            reconnect_delay=config.REALTIME_RECONNECT_DELAY,
        )
        return cls(
            settings=config,
            data_service=data_service,
            auth=auth,
            sessions=NegotiationSessions(data_service, adapter),
            catalog=CatalogService(data_service),
            chats=ChatService(data_service),
            inventory=InventoryService(data_service),
            wallet=WalletService(data_service),
            dashboard=SellerDashboardService(data_service),
        )

    async def shutdown(self) -> None:
        """Close screens, then the HTTP client."""
        await self.sessions.close_all()
        close = getattr(self.data_service, "close", None)
        if close is not None:
            await close()
        logger.info("Application state released")


def get_app_state(request: Request) -> AppState:
    """FastAPI dependency returning the state stored by the lifespan."""
    return request.app.state.app_state
