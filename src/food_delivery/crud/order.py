import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from food_delivery.crud.driver import claim_driver, release_driver
from food_delivery.exceptions import (
    ConflictError,
    DriverUnavailableError,
    OrderLifecycleError,
    PersistenceError,
)
from food_delivery.models import (
    Driver,
    MenuItem,
    Order,
    OrderItem,
    OrderStatusEnum,
    OrderStatusHistory,
    Restaurant,
)
from food_delivery.models.order import utcnow
from food_delivery.schemas.order import OrderCreate
from food_delivery.services.policy import OrderSnapshot
from food_delivery.services.transitions import is_terminal

logger = logging.getLogger(__name__)


async def _rollback(db: AsyncSession, operation: str) -> None:
    try:
        await db.rollback()
    except SQLAlchemyError:
        logger.exception("Rollback failed during %s", operation)


@asynccontextmanager
async def persistence_errors(db: AsyncSession, operation: str):
    """
    Любая ошибка БД внутри блока превращается в PersistenceError, транзакция откатывается.
    Используется и для чтений вне коммита.
    """
    try:
        yield
    except SQLAlchemyError as e:
        await _rollback(db, operation)
        logger.exception("Persistence failure during %s", operation)
        raise PersistenceError() from e


@asynccontextmanager
async def atomic(db: AsyncSession, operation: str):
    """
    Одна граница коммита: либо применяется всё, либо ничего.
    Всё, что возвращается вызывающему, читается до коммита внутри блока.
    """
    async with persistence_errors(db, operation):
        try:
            yield
            await db.commit()
        except OrderLifecycleError:
            await _rollback(db, operation)
            raise


def _read_options():
    return (
        selectinload(Order.items).selectinload(OrderItem.menu_item),
        selectinload(Order.status_history),
        selectinload(Order.customer),
        selectinload(Order.restaurant),
        selectinload(Order.driver).selectinload(Driver.user),
    )


async def get_orders(
    db: AsyncSession,
    customer_id: Optional[int] = None,
    restaurant_id: Optional[int] = None,
    driver_id: Optional[int] = None,
    statuses: Optional[Sequence[OrderStatusEnum]] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
) -> List[Order]:
    """
    Возвращает список заказов с опциональной фильтрацией.
    Подгружаем items, историю статусов, клиента, ресторан и водителя.
    Сортируем по created_at (новые первыми).
    """
    stmt = select(Order).options(*_read_options()).order_by(Order.created_at.desc(), Order.id.desc())

    if customer_id is not None:
        stmt = stmt.where(Order.customer_id == customer_id)
    if restaurant_id is not None:
        stmt = stmt.where(Order.restaurant_id == restaurant_id)
    if driver_id is not None:
        stmt = stmt.where(Order.driver_id == driver_id)
    if statuses:
        stmt = stmt.where(Order.status.in_(list(statuses)))
    if limit:
        stmt = stmt.limit(limit)
    if offset:
        stmt = stmt.offset(offset)

    result = await db.execute(stmt)
    return result.scalars().unique().all()


async def get_order_by_id(db: AsyncSession, order_id: int) -> Optional[Order]:
    """
    Read-модель заказа со всеми связями.
    populate_existing нужен, чтобы после UPDATE без синхронизации сессии получить свежие данные.
    """
    stmt = (
        select(Order)
        .where(Order.id == order_id)
        .options(*_read_options())
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    return result.scalars().unique().first()


async def load_order_for_transition(db: AsyncSession, order_id: int) -> Optional[OrderSnapshot]:
    """
    Узкий срез заказа для автомата статусов: статус, клиент, владелец ресторана, водитель.
    """
    stmt = (
        select(
            Order.id,
            Order.status,
            Order.customer_id,
            Order.driver_id,
            Restaurant.owner_id.label("restaurant_owner_id"),
            Driver.user_id.label("driver_user_id"),
        )
        .join(Restaurant, Restaurant.id == Order.restaurant_id)
        .outerjoin(Driver, Driver.id == Order.driver_id)
        .where(Order.id == order_id)
    )
    result = await db.execute(stmt)
    row = result.first()
    if row is None:
        return None

    return OrderSnapshot(
        id=row.id,
        status=OrderStatusEnum(row.status),
        customer_id=row.customer_id,
        restaurant_owner_id=row.restaurant_owner_id,
        driver_id=row.driver_id,
        driver_user_id=row.driver_user_id,
    )


async def create_order(db: AsyncSession, order_in: OrderCreate, customer_id: int) -> Order:
    """
    Создаём заказ, позиции и первую запись истории (pending) одним коммитом.
    Цены берём из меню на момент заказа, итог = позиции + доставка.
    """
    restaurant = await db.get(Restaurant, order_in.restaurant_id)
    if not restaurant or not restaurant.is_active:
        raise ValueError(f"Restaurant with id={order_in.restaurant_id} not found")

    menu_item_ids = {item.menu_item_id for item in order_in.items}
    result = await db.execute(select(MenuItem).where(MenuItem.id.in_(menu_item_ids)))
    menu = {menu_item.id: menu_item for menu_item in result.scalars().all()}

    items = []
    subtotal = Decimal("0")
    for item in order_in.items:
        menu_item = menu.get(item.menu_item_id)
        if not menu_item or menu_item.restaurant_id != restaurant.id:
            raise ValueError(f"Menu item with id={item.menu_item_id} not found")
        if not menu_item.is_available:
            raise ValueError(f"Menu item with id={item.menu_item_id} is not available")

        subtotal += menu_item.price * item.quantity
        items.append(
            OrderItem(
                menu_item_id=menu_item.id,
                quantity=item.quantity,
                unit_price=menu_item.price,
                notes=item.notes,
            )
        )

    now = utcnow()
    order = Order(
        customer_id=customer_id,
        restaurant_id=restaurant.id,
        status=OrderStatusEnum.pending,
        total_amount=(subtotal + order_in.delivery_fee).quantize(Decimal("0.01")),
        delivery_fee=order_in.delivery_fee,
        delivery_address=order_in.delivery_address,
        delivery_latitude=order_in.delivery_latitude,
        delivery_longitude=order_in.delivery_longitude,
        notes=order_in.notes,
        created_at=now,
        updated_at=now,
    )
    order.items = items
    order.status_history = [OrderStatusHistory(status=OrderStatusEnum.pending, created_at=now)]

    async with atomic(db, "create_order"):
        db.add(order)
        await db.flush()
        created = await get_order_by_id(db, order.id)

    logger.info("Order %s placed by customer_id=%s", created.id, customer_id)
    return created


def _same_driver(driver_id: Optional[int]):
    return Order.driver_id.is_(None) if driver_id is None else Order.driver_id == driver_id


async def _compare_and_swap(db: AsyncSession, order: OrderSnapshot, **values) -> None:
    """
    Обновляет заказ, только если статус и водитель не изменились с момента загрузки.
    """
    result = await db.execute(
        update(Order)
        .where(
            Order.id == order.id,
            Order.status == order.status,
            _same_driver(order.driver_id),
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError(order.id)


async def _bind_driver(db: AsyncSession, order: OrderSnapshot, driver_id: Optional[int]) -> bool:
    """
    Занимает нового водителя и освобождает прежнего. Возвращает True, если водитель сменился.
    """
    if driver_id is None or driver_id == order.driver_id:
        return False
    if not await claim_driver(db, driver_id):
        raise DriverUnavailableError(driver_id)
    if order.driver_id is not None:
        await release_driver(db, order.driver_id)
    return True


async def save_order_transition(
    db: AsyncSession,
    order: OrderSnapshot,
    new_status: OrderStatusEnum,
    driver_id: Optional[int] = None,
    notes: Optional[str] = None,
) -> Order:
    """
    Атомарно применяет переход:
    - занимает водителя (если передан новый) и освобождает прежнего;
    - меняет статус и updated_at с проверкой, что заказ не изменился (иначе ConflictError);
    - добавляет строку в историю статусов;
    - на финальном статусе освобождает водителя заказа.
    """
    now = utcnow()
    values = {"status": new_status, "updated_at": now}

    async with atomic(db, f"transition of order {order.id}"):
        if await _bind_driver(db, order, driver_id):
            values["driver_id"] = driver_id
        bound_driver_id = values.get("driver_id", order.driver_id)

        await _compare_and_swap(db, order, **values)
        db.add(OrderStatusHistory(order_id=order.id, status=new_status, created_at=now, notes=notes))

        if is_terminal(new_status) and bound_driver_id is not None:
            await release_driver(db, bound_driver_id)

        updated = await get_order_by_id(db, order.id)

    return updated


async def save_driver_assignment(db: AsyncSession, order: OrderSnapshot, driver_id: int) -> Order:
    """
    Назначает водителя без смены статуса. В историю ничего не пишется.
    """
    async with atomic(db, f"driver assignment of order {order.id}"):
        if await _bind_driver(db, order, driver_id):
            await _compare_and_swap(db, order, driver_id=driver_id, updated_at=utcnow())
        updated = await get_order_by_id(db, order.id)

    return updated
