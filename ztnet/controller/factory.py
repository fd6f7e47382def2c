"""Pick the controller adapter configured for this deployment."""

from __future__ import annotations

import logging

from ztnet.config import PROVIDER_CENTRAL, PROVIDER_SELF_HOSTED_CONTROLLER, AppSettings
from ztnet.controller.auth_token import resolve_auth_token
from ztnet.controller.base import ControllerClient
from ztnet.controller.central import ZeroTierCentralController
from ztnet.controller.self_hosted_controller import ZeroTierSelfHostedController

logger = logging.getLogger(__name__)


def create_controller_client(settings: AppSettings) -> ControllerClient:
    provider_mode = settings.zt_provider.strip().lower()
    if provider_mode == PROVIDER_CENTRAL:
        base_url = settings.zt_central_base_url.strip()
        token = settings.zt_central_api_token.strip()
        if not base_url or not token:
            raise ValueError(
                "zerotier.central.base_url and zerotier.central.api_token are required "
                "when zerotier.provider=central"
            )
        logger.info("using ZeroTier Central controller base_url=%s", base_url)
        return ZeroTierCentralController(
            base_url=base_url,
            api_token=token,
            timeout_seconds=settings.zt_http_timeout_seconds,
        )

    if provider_mode == PROVIDER_SELF_HOSTED_CONTROLLER:
        base_url = settings.zt_controller_base_url.strip()
        if not base_url:
            raise ValueError(
                "zerotier.self_hosted_controller.base_url is required "
                "when zerotier.provider=self_hosted_controller"
            )
        logger.info("using self-hosted ZeroTier controller base_url=%s", base_url)
        return ZeroTierSelfHostedController(
            base_url=base_url,
            auth_token=resolve_auth_token(settings),
            timeout_seconds=settings.zt_http_timeout_seconds,
        )

    raise ValueError(
        f"unsupported controller provider {settings.zt_provider!r}; expected "
        f"{PROVIDER_CENTRAL!r} or {PROVIDER_SELF_HOSTED_CONTROLLER!r}"
    )
