"""FastAPI application entry point for the journal service.

This module wires the journal together:
- Loads and logs the configuration (secrets redacted)
- Builds the GitHub client, journal cache, loader and webhook dispatcher
- Reconciles the cache with the open issues on startup
- Exposes the webhook receiver, on-demand reconciliation, cache snapshots,
  health probes and Prometheus metrics
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Header, HTTPException, Request, Response
from fastapi.responses import PlainTextResponse
from prometheus_client import CollectorRegistry

from .cache.journal import JournalCache
from .config import JournalSettings, get_settings
from .events.emitter import LoggingSubscriber
from .events.metrics import JournalMetrics, MetricsSubscriber, generate_metrics_output
from .events.models import EventCategory
from .github.client import GitHubClient, UpstreamFetchError
from .loader import IssueSource, ReconciliationLoader
from .webhook.handler import WebhookDispatcher
from .webhook.signature import AuthenticationError, ConfigurationError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _redact_secret(value: Optional[str], visible_chars: int = 4) -> str:
    """Redact a secret value, showing only the first few characters.

    Args:
        value: The secret value to redact.
        visible_chars: Number of characters to show at the start.

    Returns:
        Redacted string with asterisks replacing hidden characters.
    """
    if not value:
        return "<not set>"
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * (len(value) - visible_chars)


def _log_configuration(settings: JournalSettings) -> None:
    logger.info("Journal configuration:")
    logger.info(f"  GitHub Base URL: {settings.github_base_url}")
    logger.info(f"  GitHub Repository: {settings.github_owner}/{settings.github_repo}")
    logger.info(f"  GitHub Token: {_redact_secret(settings.github_token)}")
    logger.info(
        f"  GitHub Webhook Secret: {_redact_secret(settings.github_webhook_secret)}"
    )
    logger.info(f"  Search Page Size: {settings.search_page_size}")
    logger.info(f"  Reconcile Timeout Seconds: {settings.reconcile_timeout_seconds}")
    logger.info(f"  Backfill Timeout Seconds: {settings.backfill_timeout_seconds}")
    logger.info(f"  Host: {settings.host}")
    logger.info(f"  Port: {settings.port}")

    if settings.github_webhook_secret is None:
        logger.error(
            "JOURNALS_GITHUB_WEBHOOK_SECRET is not set, webhook deliveries "
            "will be refused"
        )


def create_app(
    settings: Optional[JournalSettings] = None,
    github_client: Optional[IssueSource] = None,
    registry: Optional[CollectorRegistry] = None,
) -> FastAPI:
    """Create the journal FastAPI application.

    Args:
        settings: Settings to use. Read from the environment on startup
                  when omitted.
        github_client: Upstream issue source. A GitHubClient is built from
                       the settings when omitted.
        registry: Prometheus registry for the metrics. Uses the default
                  registry when omitted.

    Returns:
        The configured FastAPI application.
    """
    metrics = JournalMetrics(registry=registry)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Journal service starting up...")

        cfg = settings or get_settings()
        _log_configuration(cfg)

        owned_client: Optional[GitHubClient] = None
        source = github_client
        if source is None:
            owned_client = GitHubClient(
                token=cfg.github_token,
                base_url=cfg.github_base_url,
                page_size=cfg.search_page_size,
            )
            source = owned_client

        cache = JournalCache()
        cache.subscribe(EventCategory.ISSUE, LoggingSubscriber())
        cache.subscribe(EventCategory.COMMENT, LoggingSubscriber())
        metrics_subscriber = MetricsSubscriber(metrics)
        cache.subscribe(EventCategory.ISSUE, metrics_subscriber)
        cache.subscribe(EventCategory.COMMENT, metrics_subscriber)
        metrics.track_cache_size(lambda: len(cache))

        loader = ReconciliationLoader(
            cache=cache,
            source=source,
            owner=cfg.github_owner,
            repo=cfg.github_repo,
            timeout_seconds=cfg.reconcile_timeout_seconds,
            metrics=metrics,
        )
        dispatcher = WebhookDispatcher(
            cache=cache,
            loader=loader,
            secret=cfg.github_webhook_secret,
            backfill_timeout_seconds=cfg.backfill_timeout_seconds,
            metrics=metrics,
        )

        app.state.settings = cfg
        app.state.cache = cache
        app.state.loader = loader
        app.state.dispatcher = dispatcher
        app.state.reconciled = False

        try:
            await loader.load_open_issues()
            app.state.reconciled = True
        except UpstreamFetchError as e:
            logger.error(
                "Initial reconciliation failed, serving an empty journal: %s",
                e.message,
            )

        logger.info("Journal service started successfully")

        yield

        logger.info("Journal service shutting down...")

        await dispatcher.drain()
        if owned_client is not None:
            await owned_client.close()

        logger.info("Journal service shutdown complete")

    app = FastAPI(
        title="Journal Service",
        description="Synchronized cache of GitHub journal issues and comments",
        version="1.0.0",
        lifespan=lifespan,
    )

    @app.get("/health")
    async def health():
        """Liveness probe endpoint."""
        return {"status": "healthy"}

    @app.get("/ready")
    async def ready(request: Request):
        """Readiness probe endpoint.

        The service is ready once a reconciliation has succeeded.

        Raises:
            HTTPException: 503 until the cache has been reconciled.
        """
        if not getattr(request.app.state, "reconciled", False):
            raise HTTPException(status_code=503, detail="Journal not reconciled")
        return {"status": "ready", "issues": len(request.app.state.cache)}

    @app.get("/metrics", response_class=PlainTextResponse)
    async def metrics_endpoint():
        """Prometheus metrics endpoint."""
        return PlainTextResponse(generate_metrics_output(metrics.registry))

    @app.get("/issues")
    async def list_issues(
        request: Request,
        namespace: Optional[str] = None,
        name: Optional[str] = None,
    ):
        """Snapshot of the cached issues.

        With both ``namespace`` and ``name`` the snapshot is narrowed to the
        issues of that managed resource.
        """
        cache: JournalCache = request.app.state.cache
        if namespace and name:
            numbers = cache.get_issue_numbers(namespace, name)
            issues = [cache.get_issue(number) for number in numbers]
            issues = [issue for issue in issues if issue is not None]
        else:
            issues = cache.get_issues()
        return [issue.model_dump(mode="json") for issue in issues]

    @app.get("/issues/{number}/comments")
    async def list_comments(number: int, request: Request):
        """Snapshot of the cached comments of an issue."""
        cache: JournalCache = request.app.state.cache
        if cache.get_issue(number) is None:
            raise HTTPException(status_code=404, detail=f"Issue #{number} not cached")
        return [comment.model_dump(mode="json") for comment in cache.get_comments(number)]

    @app.post("/reconcile")
    async def reconcile(
        request: Request,
        namespace: Optional[str] = None,
        name: Optional[str] = None,
    ):
        """Reload open issues from GitHub.

        Without parameters the whole cache is reset and reloaded. With both
        ``namespace`` and ``name`` only the issues of that managed resource
        are fetched and applied, leaving the rest of the cache untouched.

        Raises:
            HTTPException: 502 if the GitHub search fails.
        """
        loader: ReconciliationLoader = request.app.state.loader
        if namespace and name:
            try:
                issues = await loader.list_issues(namespace, name)
            except UpstreamFetchError as e:
                raise HTTPException(status_code=502, detail=e.message)
            return {"status": "refreshed", "issues": len(issues)}

        try:
            count = await loader.load_open_issues()
        except UpstreamFetchError as e:
            request.app.state.reconciled = False
            raise HTTPException(status_code=502, detail=e.message)
        request.app.state.reconciled = True
        return {"status": "reconciled", "issues": count}

    @app.post("/webhook")
    async def github_webhook(
        request: Request,
        x_github_event: Optional[str] = Header(None),
        x_hub_signature: Optional[str] = Header(None),
    ):
        """GitHub webhook receiver endpoint.

        The raw body is read before parsing so the signature is checked
        against the exact bytes GitHub signed. Comment backfills run after
        the response is sent.

        Returns:
            An empty 200 response once the delivery is applied.
        """
        body = await request.body()
        dispatcher: WebhookDispatcher = request.app.state.dispatcher
        try:
            await dispatcher.handle(x_github_event, x_hub_signature, body)
        except ConfigurationError as e:
            raise HTTPException(status_code=500, detail=e.message)
        except AuthenticationError as e:
            raise HTTPException(status_code=403, detail=e.message)
        return Response(status_code=200)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    dev_settings = get_settings()
    uvicorn.run(
        "src.journals.main:app",
        host=dev_settings.host,
        port=dev_settings.port,
        reload=False,
    )
