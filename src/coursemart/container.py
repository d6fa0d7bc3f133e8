"""Service container wiring application components."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from coursemart.cms import CmsGateway, InMemoryCmsGateway, StrapiGateway
from coursemart.config import AppSettings
from coursemart.domain import UserRef
from coursemart.features import CartStore, FriendsStore, WishlistStore
from coursemart.sync import SyncSession

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ServiceContainer:
    """Session-scoped services shared by every store built from it."""

    settings: AppSettings
    session: SyncSession
    gateway: CmsGateway

    def cart(self, owner: UserRef) -> CartStore:
        return CartStore(self.session, self.gateway, owner, logger=logger)

    def wishlist(self, owner: UserRef) -> WishlistStore:
        return WishlistStore(self.session, self.gateway, owner, logger=logger)

    def friends(self, owner: UserRef) -> FriendsStore:
        return FriendsStore(
            self.session,
            self.gateway,
            owner,
            friend_limit=self.settings.friend_limit,
            logger=logger,
        )


def build_gateway(settings: AppSettings) -> CmsGateway:
    if settings.cms_url:
        return StrapiGateway(
            settings.cms_url,
            token=settings.cms_token,
            timeout=settings.request_timeout,
        )
    logger.info("COURSEMART_CMS_URL is not set; using the in-memory CMS gateway")
    return InMemoryCmsGateway()


def build_container(
    settings: AppSettings | None = None,
    *,
    gateway: CmsGateway | None = None,
) -> ServiceContainer:
    """Construct the primary service container."""

    resolved_settings = settings or AppSettings.from_env()
    session = SyncSession(
        mutation_timeout=resolved_settings.mutation_timeout,
        notification_history=resolved_settings.notification_history,
    )
    return ServiceContainer(
        settings=resolved_settings,
        session=session,
        gateway=gateway or build_gateway(resolved_settings),
    )


__all__ = ["ServiceContainer", "build_container", "build_gateway"]
