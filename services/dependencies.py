"""Dependency container wiring the store and external clients together.

One container is built per process and handed to every request through
FastAPI's dependency system. Tests build their own container with in-memory
fakes and install it with ``app.dependency_overrides[get_dependencies]``.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

from config import Settings, settings as default_settings
from schemas.subscriptions import utcnow
from services.github_dispatch import DispatchClient, GitHubDispatchClient
from services.mock_pubsub import MockDispatchClient, MockHubGateway
from services.notification import NotificationService
from services.pubsub_client import HTTPHubGateway, HubGateway
from services.subscription_renewal import RenewalScheduler
from services.subscription_service import SubscriptionService
from services.subscription_store import InMemorySubscriptionStore, SubscriptionStore, get_subscription_store


@dataclass
class Dependencies:
    store: SubscriptionStore
    hub: HubGateway
    dispatcher: DispatchClient
    settings: Settings = field(default_factory=Settings)
    clock: Callable[[], datetime] = utcnow

    def subscription_service(self) -> SubscriptionService:
        return SubscriptionService(
            store=self.store,
            hub=self.hub,
            callback_url=self.settings.webhook_base_url,
            lease_seconds=self.settings.subscription_lease_seconds,
            clock=self.clock,
        )

    def renewal_scheduler(self) -> RenewalScheduler:
        return RenewalScheduler(
            store=self.store,
            hub=self.hub,
            renewal_threshold=timedelta(hours=self.settings.subscription_renewal_threshold_hours),
            max_attempts=self.settings.subscription_max_renewal_attempts,
            lease_seconds=self.settings.subscription_lease_seconds,
            clock=self.clock,
        )

    def notification_service(self) -> NotificationService:
        return NotificationService(self.dispatcher, clock=self.clock)

    def close(self) -> None:
        self.store.close()


def create_production_dependencies(settings: Optional[Settings] = None) -> Dependencies:
    settings = settings or default_settings
    return Dependencies(
        store=get_subscription_store(settings),
        hub=HTTPHubGateway(
            hub_url=settings.pubsubhubbub_hub_url,
            callback_url=settings.webhook_base_url,
            lease_seconds=settings.subscription_lease_seconds,
            timeout=settings.hub_request_timeout_seconds,
        ),
        dispatcher=GitHubDispatchClient(
            token=settings.github_token,
            repo_owner=settings.repo_owner,
            repo_name=settings.repo_name,
            base_url=settings.github_api_base_url,
            environment=settings.environment,
        ),
        settings=settings,
    )


def create_test_dependencies(
    settings: Optional[Settings] = None,
    clock: Callable[[], datetime] = utcnow,
) -> Dependencies:
    return Dependencies(
        store=InMemorySubscriptionStore(clock=clock),
        hub=MockHubGateway(),
        dispatcher=MockDispatchClient(),
        settings=settings or Settings(storage_type="memory"),
        clock=clock,
    )


# Global dependencies instance (lazy initialization)
_dependencies: Optional[Dependencies] = None


def get_dependencies() -> Dependencies:
    """Get or create the process-wide dependencies."""
    global _dependencies
    if _dependencies is None:
        _dependencies = create_production_dependencies()
    return _dependencies
