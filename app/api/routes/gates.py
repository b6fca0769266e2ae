from fastapi import APIRouter

from app.dependencies.valet import GateRegistryDep

from .schemas import GateResponse

router = APIRouter(prefix="/api/gates", tags=["gates"])


@router.get("", response_model=list[GateResponse])
async def list_gates(registry: GateRegistryDep) -> list[GateResponse]:
    gates = await registry.list_gates()
    return [GateResponse.model_validate(gate) for gate in gates]
