from fastapi import APIRouter, Depends

from app.api.deps import get_current_identity
from app.schemas.auth import Identity

router = APIRouter()


@router.get("/me", response_model=Identity)
async def read_current_identity(identity: Identity = Depends(get_current_identity)):
    """Return the identity resolved from the request's session credential."""
    return identity
