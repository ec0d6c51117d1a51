from typing import Optional

from fastapi import Header, HTTPException

from food_delivery.models.user import RoleEnum
from food_delivery.services.policy import Caller


async def get_caller(
    x_user_id: Optional[int] = Header(None, description="ID пользователя, проверенный шлюзом аутентификации"),
    x_user_role: Optional[str] = Header(None, description="Роль пользователя: customer, driver, admin"),
) -> Caller:
    """
    Личность вызывающего приходит от внешнего слоя аутентификации в заголовках.
    Здесь ей только доверяем, но не проверяем.
    """
    if x_user_id is None or not x_user_role:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        role = RoleEnum(x_user_role.strip().lower())
    except ValueError:
        raise HTTPException(status_code=401, detail="Unknown user role")
    return Caller(id=x_user_id, role=role)
