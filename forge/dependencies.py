"""FastAPI dependencies for the HTTP controllers.

    @router.post("/execute")
    async def execute(body: ExecutionRequest, coordinator: Coordinator, admission: Admission):
        ...

The WebSocket endpoint reads ``forge.state`` directly and closes the
socket instead of raising.
"""

from typing import Annotated

from fastapi import Depends, Header

from forge import state
from forge.admission import AdmissionController
from forge.auth import verify_token
from forge.config import get_settings
from forge.errors import ServiceUnavailableError
from forge.sandbox import ExecutionCoordinator


def get_coordinator() -> ExecutionCoordinator:
    """Get the execution coordinator.

    Raises:
        ServiceUnavailableError: If the sandbox is disabled or not started.
    """
    if not get_settings().sandbox.enabled:
        raise ServiceUnavailableError(detail="Code execution is disabled")
    if state.coordinator is None:
        raise ServiceUnavailableError(detail="Sandbox not initialized")
    return state.coordinator


def get_admission() -> AdmissionController:
    if state.admission is None:
        raise ServiceUnavailableError(detail="Sandbox not initialized")
    return state.admission


def require_token(authorization: Annotated[str | None, Header()] = None) -> None:
    verify_token(authorization)


Coordinator = Annotated[ExecutionCoordinator, Depends(get_coordinator)]
Admission = Annotated[AdmissionController, Depends(get_admission)]
