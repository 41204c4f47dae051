from typing import Optional

import redis.asyncio as redis

from forge.admission import AdmissionController
from forge.bus import EventBus
from forge.sandbox import ExecutionCoordinator

# Global runtime state initialized in lifespan
redis_client: Optional[redis.Redis] = None
event_bus: Optional[EventBus] = None
coordinator: Optional[ExecutionCoordinator] = None
admission: Optional[AdmissionController] = None
