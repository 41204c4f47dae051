"""Startup and shutdown of the process-wide resources.

Startup builds the execution coordinator once (language table, workspace
manager, process runner), sweeps workspaces a crashed predecessor left
behind, and connects the Redis client used for room fan-out. The handles
are published on ``forge.state`` for controllers and dependencies.
"""

import logging
from dataclasses import dataclass

import redis.asyncio as redis

from forge import state
from forge.admission import AdmissionController
from forge.bus import EventBus
from forge.config import get_settings
from forge.sandbox import ExecutionCoordinator, build_coordinator

logger = logging.getLogger(__name__)


@dataclass
class LifespanResources:
    redis_client: redis.Redis | None = None
    event_bus: EventBus | None = None
    coordinator: ExecutionCoordinator | None = None
    admission: AdmissionController | None = None


def init_redis() -> redis.Redis:
    """Create the Redis client; connections are opened lazily by the pool."""
    cfg = get_settings().redis
    pool = redis.BlockingConnectionPool(
        host=cfg.host,
        port=cfg.port,
        password=cfg.password or None,
        max_connections=cfg.max_connections,
        timeout=cfg.pool_timeout_sec,
        health_check_interval=cfg.health_check_interval,
        socket_timeout=cfg.socket_timeout,
        socket_connect_timeout=cfg.socket_connect_timeout,
        decode_responses=True,
    )
    return redis.Redis(connection_pool=pool)


def init_sandbox() -> tuple[ExecutionCoordinator, AdmissionController]:
    """Build the coordinator and its admission controller from settings."""
    sandbox = get_settings().sandbox
    coordinator = build_coordinator(sandbox)
    coordinator.workspaces.sweep_stale()
    logger.info(
        "Sandbox ready: root=%s timeout=%gs max_output=%d max_concurrent=%d",
        coordinator.workspaces.root,
        sandbox.timeout_sec,
        sandbox.max_output_chars,
        sandbox.max_concurrent,
    )
    return coordinator, AdmissionController.from_settings(sandbox)


async def setup_resources() -> LifespanResources:
    redis_client = init_redis()
    coordinator, admission = init_sandbox()
    resources = LifespanResources(
        redis_client=redis_client,
        event_bus=EventBus(redis_client),
        coordinator=coordinator,
        admission=admission,
    )

    state.redis_client = resources.redis_client
    state.event_bus = resources.event_bus
    state.coordinator = resources.coordinator
    state.admission = resources.admission
    return resources


async def cleanup_resources(resources: LifespanResources) -> None:
    """Close Redis and clear ``forge.state``.

    Workspaces need no teardown here: each one is removed by the execution
    that created it.
    """
    if resources.redis_client is not None:
        try:
            await resources.redis_client.aclose()
        except Exception as e:
            logger.warning("Error closing Redis client: %s", e)

    state.redis_client = None
    state.event_bus = None
    state.coordinator = None
    state.admission = None
