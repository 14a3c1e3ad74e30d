from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.security import TokenClaims, require_admin, require_member
from ..models.database import get_db
from ..models.schemas import NotificationCreate, NotificationListQuery, NotificationRead, NotificationUpdate
from ..services.notification_service import NotificationService
from ..utils.responses import paginated_response, success_response

router = APIRouter(tags=["notifications"])


@router.get("/user/notifications")
async def list_my_notifications(
    query: NotificationListQuery = Depends(),
    current_user: TokenClaims = Depends(require_member),
    db: AsyncSession = Depends(get_db)
):
    notifications, total = await NotificationService(db).list_for_user(current_user.id, query)
    return paginated_response(
        "berhasil menampilkan semua notifikasi pengguna", notifications, total, query, NotificationRead
    )


@router.get("/user/notifications/count")
async def count_unread_notifications(
    current_user: TokenClaims = Depends(require_member),
    db: AsyncSession = Depends(get_db)
):
    count = await NotificationService(db).unread_count(current_user.id)
    return success_response("berhasil menampilkan jumlah notifikasi belum dibaca", {"count": count})


@router.patch("/user/notifications/read-all")
async def mark_all_notifications_read(
    current_user: TokenClaims = Depends(require_member),
    db: AsyncSession = Depends(get_db)
):
    updated = await NotificationService(db).mark_all_read(current_user.id)
    return success_response("berhasil menandai semua notifikasi sebagai dibaca", {"updated": updated})


@router.get("/user/notifications/{notification_id}")
async def read_notification(
    notification_id: int,
    current_user: TokenClaims = Depends(require_member),
    db: AsyncSession = Depends(get_db)
):
    """Open one of the caller's notifications; it is marked read."""
    notification = await NotificationService(db).read(notification_id, current_user)
    return success_response("berhasil menampilkan notifikasi pengguna", NotificationRead.model_validate(notification))


@router.get("/admin/notifications")
async def list_notifications(
    query: NotificationListQuery = Depends(),
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    notifications, total = await NotificationService(db).list_all(query)
    return paginated_response("berhasil menampilkan semua notifikasi", notifications, total, query, NotificationRead)


@router.get("/admin/notifications/user/{user_id}")
async def list_user_notifications(
    user_id: int,
    query: NotificationListQuery = Depends(),
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    notifications, total = await NotificationService(db).list_for_user(user_id, query)
    return paginated_response("berhasil menampilkan semua notifikasi", notifications, total, query, NotificationRead)


@router.post("/admin/notifications", status_code=201)
async def create_notification(
    payload: NotificationCreate,
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    notification = await NotificationService(db).create(payload)
    return success_response("berhasil membuat notifikasi", NotificationRead.model_validate(notification), 201)


@router.put("/admin/notifications/{notification_id}")
async def update_notification(
    notification_id: int,
    payload: NotificationUpdate,
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    notification = await NotificationService(db).update(notification_id, payload)
    return success_response("berhasil memperbarui notifikasi", NotificationRead.model_validate(notification))


@router.delete("/admin/notifications/{notification_id}")
async def delete_notification(
    notification_id: int,
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    await NotificationService(db).delete(notification_id)
    return success_response("berhasil menghapus notifikasi")
