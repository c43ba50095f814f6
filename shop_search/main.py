"""Service wiring for the product search core."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog

from shop_search.config import Settings, get_settings
from shop_search.search.base import StrategySettings
from shop_search.search.clients import (
    EmbeddingClient,
    EmbeddingConfig,
    TypesenseBackend,
    TypesenseConfig,
)
from shop_search.search.fusion import FusionWeightPolicy
from shop_search.search.intent import IntentAnalyzer, IntentAnalyzerConfig
from shop_search.search.orchestrator import SearchOrchestrator

logger = structlog.get_logger()


def configure_logging(settings: Settings | None = None) -> None:
    """Configure stdlib logging and structlog."""
    settings = settings or get_settings()
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.log_json
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


@asynccontextmanager
async def create_search_service(
    settings: Settings | None = None,
) -> AsyncIterator[SearchOrchestrator]:
    """Build an orchestrator with clients from settings and close them on exit.

    Usage:
        async with create_search_service() as orchestrator:
            result = await orchestrator.search(SearchRequest(query="paper plates"))
    """
    settings = settings or get_settings()
    logger.info(
        "starting_search_service",
        service=settings.service_name,
        collection=settings.typesense_collection_name,
        intent_analyzer=settings.intent_analyzer_enabled,
    )

    backend = TypesenseBackend(TypesenseConfig.from_settings(settings))
    embedder = EmbeddingClient(EmbeddingConfig.from_settings(settings)) if settings.openai_api_key else None
    intent_analyzer = IntentAnalyzer(IntentAnalyzerConfig.from_settings(settings)) if settings.intent_analyzer_enabled else None

    await backend.initialize()
    try:
        yield SearchOrchestrator(
            backend,
            embedder=embedder,
            intent_analyzer=intent_analyzer,
            settings=StrategySettings.from_settings(settings),
            fusion_policy=FusionWeightPolicy.from_settings(settings),
            max_limit=settings.max_search_limit,
        )
    finally:
        await backend.close()
        if embedder:
            await embedder.close()
        if intent_analyzer:
            await intent_analyzer.close()
        logger.info("search_service_stopped", service=settings.service_name)
