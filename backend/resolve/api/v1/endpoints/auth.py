from typing import Any, Dict

from fastapi import APIRouter, Depends

from resolve.api.deps import get_current_user
from resolve.db.models import User
from resolve.db.schemas import UserOut, dump

router = APIRouter()


@router.get("/me")
def get_me(current_user: User = Depends(get_current_user)) -> Dict[str, Any]:
    """Profile of the bearer-token user, provisioned on first sight."""
    return {"data": dump(UserOut, current_user)}
