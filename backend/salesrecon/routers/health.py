from fastapi import APIRouter

from salesrecon.schemas.common import meta_now, ok

router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("")
def healthcheck():
    return ok(data={"status": "ok"}, meta=meta_now())
