"""Run the image trust admission webhook."""

import argparse
import asyncio
import contextlib
import logging
from typing import AsyncIterator

from aiohttp import web

from .cluster import KubernetesCluster
from .config import load_config
from .controllers.imagepolicy import ImagePolicyReconciler
from .core.context import configure_logging
from .server import build_app, ssl_context

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Image trust admission webhook")
    parser.add_argument("--config", help="Path to YAML config (default: $IMAGE_TRUST_CONFIG)")
    parser.add_argument(
        "--enable-controller",
        action="store_true",
        help="Also run the ImagePolicy reconciler",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    config = load_config(args.config)
    configure_logging(config.log_level)

    cluster = KubernetesCluster.from_environment()
    app = build_app(config, cluster)

    if args.enable_controller:
        reconciler = ImagePolicyReconciler(cluster)

        async def controller(app: web.Application) -> AsyncIterator[None]:
            task = asyncio.create_task(reconciler.run(cluster.watch_image_policies()))
            yield
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        app.cleanup_ctx.append(controller)

    logger.info(
        f"starting admission webhook on {config.webhook.host}:{config.webhook.port} "
        f"(timeout {config.webhook.timeout}s, {len(config.service.allowed_registries)} allowed registries)"
    )
    web.run_app(
        app,
        host=config.webhook.host,
        port=config.webhook.port,
        ssl_context=ssl_context(config),
    )


if __name__ == "__main__":
    main()
