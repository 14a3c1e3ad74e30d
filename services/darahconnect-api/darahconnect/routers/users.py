from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ..core.exceptions import DarahConnectError
from ..core.security import TokenClaims, require_admin, require_member
from ..models.database import get_db
from ..models.schemas import UserListQuery, UserRead, UserUpdateRequest
from ..services.user_service import UserService
from ..utils.responses import paginated_response, success_response

logger = structlog.get_logger()
router = APIRouter(tags=["users"])


@router.get("/user/profile")
async def get_profile(
    current_user: TokenClaims = Depends(require_member),
    db: AsyncSession = Depends(get_db)
):
    user = await UserService(db).get(current_user.id)
    return success_response("successfully showing user", UserRead.model_validate(user))


@router.put("/user/profile")
async def update_profile(
    payload: UserUpdateRequest,
    current_user: TokenClaims = Depends(require_member),
    db: AsyncSession = Depends(get_db)
):
    """Update the caller's profile. Empty fields are left untouched."""
    try:
        user = await UserService(db).update_profile(current_user.id, payload)
        return success_response("successfully update user", UserRead.model_validate(user))
    except DarahConnectError:
        raise
    except Exception as e:
        logger.error("Profile update failed", user_id=current_user.id, error=str(e))
        raise HTTPException(status_code=500, detail="Gagal memperbarui profil")


@router.put("/user/profile/picture")
async def update_profile_picture(
    file: UploadFile = File(...),
    current_user: TokenClaims = Depends(require_member),
    db: AsyncSession = Depends(get_db)
):
    """Upload a profile picture to the image host, replacing the previous one."""
    content = await file.read()
    user = await UserService(db).update_picture(current_user.id, file.filename, content)
    return success_response("berhasil memperbarui foto profil", UserRead.model_validate(user))


@router.get("/admin/users")
async def list_users(
    query: UserListQuery = Depends(),
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    users, total = await UserService(db).list(query)
    return paginated_response("successfully fetch all users", users, total, query, UserRead)


@router.get("/admin/users/{user_id}")
async def get_user(
    user_id: int,
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    user = await UserService(db).get(user_id)
    return success_response("successfully showing a user", UserRead.model_validate(user))


@router.delete("/admin/users/{user_id}")
async def delete_user(
    user_id: int,
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    await UserService(db).delete(user_id)
    return success_response("successfully delete user")
