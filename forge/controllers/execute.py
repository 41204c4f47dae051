from typing import Annotated, Any

from fastapi import APIRouter, Depends, Header, Request

from forge import state
from forge.dependencies import Admission, Coordinator, require_token
from forge.models.execution import LanguageInfo, LanguagesResponse, ToolchainsResponse
from forge.sandbox import DEFAULT_REGISTRY, ExecutionRequest
from forge.sandbox.languages import toolchain_status

router = APIRouter(prefix="/api", tags=["execution"])


def _registry():
    return state.coordinator.registry if state.coordinator else DEFAULT_REGISTRY


@router.get("/languages", response_model=LanguagesResponse)
async def list_languages() -> LanguagesResponse:
    return LanguagesResponse(
        languages=[
            LanguageInfo(
                id=profile.language.value,
                name=profile.display_name,
                extension=profile.file_extension,
                executable=profile.executable,
            )
            for profile in _registry().values()
        ]
    )


@router.get("/toolchains", response_model=ToolchainsResponse)
async def list_toolchains() -> ToolchainsResponse:
    return ToolchainsResponse(toolchains=toolchain_status(_registry()))


@router.post("/execute", dependencies=[Depends(require_token)])
async def execute(
    body: ExecutionRequest,
    request: Request,
    coordinator: Coordinator,
    admission: Admission,
    x_user_name: Annotated[str | None, Header()] = None,
) -> dict[str, Any]:
    caller_key = x_user_name or (request.client.host if request.client else "anonymous")
    async with admission.admit(caller_key):
        result = await coordinator.execute(body, caller=x_user_name)
    return result.to_wire()
