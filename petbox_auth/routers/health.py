from fastapi import APIRouter

from ..schemas.users import StatusResponse

router = APIRouter(tags=["health"])


@router.get("/v1/status", response_model=StatusResponse)
def status():
    return StatusResponse()


@router.get("/healthz")
def healthz():
    """Liveness only; does not touch the database or Redis."""
    return {"ok": True}
