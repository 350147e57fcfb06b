from fastapi import APIRouter, Depends

from ...api.deps import get_current_principal
from ...schemas.directory import Principal, PrincipalResponse

router = APIRouter(tags=["Directory"])

@router.get("/me", response_model=PrincipalResponse)
def read_current_principal(
    principal: Principal = Depends(get_current_principal)
):
    """The principal behind the bearer token."""
    return PrincipalResponse.from_principal(principal)
