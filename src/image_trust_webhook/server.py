"""aiohttp application serving the admission webhook."""

import json
import logging
import ssl
from typing import AsyncIterator, Optional

from aiohttp import web

from .admission.review import AdmissionRequest, to_review
from .admission.webhook import DEFAULTING_PATH, DefaultingWebhook
from .cluster import Cluster
from .config import AppConfig
from .registry.client import RegistryClient
from .trust.notary import NotaryRepoFactory
from .validate.image import ImageValidator
from .validate.pod import PodImageValidator

logger = logging.getLogger(__name__)

WEBHOOK_KEY = web.AppKey("webhook", DefaultingWebhook)


async def handle_defaulting(request: web.Request) -> web.Response:
    """POST handler for the pod mutating webhook."""
    try:
        review = await request.json()
        admission_request = AdmissionRequest.from_review(review)
    except (json.JSONDecodeError, ValueError) as e:
        return web.json_response({"error": f"invalid admission review: {e}"}, status=400)

    webhook = request.app[WEBHOOK_KEY]
    response = await webhook.handle(admission_request)
    return web.json_response(to_review(admission_request.uid, response))


async def handle_healthz(request: web.Request) -> web.Response:
    """Liveness and readiness probe."""
    return web.json_response({"status": "ok"})


def create_app(webhook: DefaultingWebhook) -> web.Application:
    """Create the web application around a configured webhook."""
    app = web.Application()
    app[WEBHOOK_KEY] = webhook
    app.router.add_post(DEFAULTING_PATH, handle_defaulting)
    app.router.add_get("/healthz", handle_healthz)
    return app


def build_app(config: AppConfig, cluster: Cluster) -> web.Application:
    """Wire clients, validators and the webhook into a web application.

    Registry and trust authority sessions are opened on startup and closed on
    cleanup.
    """
    registry_client = RegistryClient(
        timeout=config.service.registry_timeout,
        insecure_registries=config.service.insecure_registries,
    )
    repo_factory = NotaryRepoFactory(timeout=config.service.notary.timeout)
    image_validator = ImageValidator(config.service, repo_factory, registry_client)
    pod_validator = PodImageValidator(cluster, image_validator)
    webhook = DefaultingWebhook(cluster, pod_validator, config.webhook.timeout)

    app = create_app(webhook)

    async def client_sessions(app: web.Application) -> AsyncIterator[None]:
        async with registry_client, repo_factory:
            yield

    app.cleanup_ctx.append(client_sessions)
    return app


def ssl_context(config: AppConfig) -> Optional[ssl.SSLContext]:
    """TLS context when certificate and key are configured."""
    if not (config.webhook.tls_cert_file and config.webhook.tls_key_file):
        logger.warning("running admission webhook without TLS")
        return None
    context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
    context.load_cert_chain(config.webhook.tls_cert_file, config.webhook.tls_key_file)
    return context
