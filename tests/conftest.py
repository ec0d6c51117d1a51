import os

# До импорта приложения: тестам не нужен Postgres
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import food_delivery.models  # noqa: F401
from food_delivery.crud.order import create_order
from food_delivery.db.base import Base
from food_delivery.models import Driver, MenuItem, Restaurant, RoleEnum, User
from food_delivery.schemas.order import OrderCreate, OrderItemCreate
from food_delivery.services.events import OrderEventBus
from food_delivery.services.lifecycle import OrderLifecycleManager
from food_delivery.services.policy import Caller


@pytest.fixture
async def engine(tmp_path):
    # файл, а не :memory:, чтобы у каждой сессии было своё соединение
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def events():
    bus = OrderEventBus()
    bus.received = []
    bus.subscribe(bus.received.append)
    return bus


@pytest.fixture
def manager(db, events):
    return OrderLifecycleManager(db, events=events)


@pytest.fixture
async def actors(session_factory):
    """
    Пользователи, рестораны, меню и водители для сценариев.
    Владельцы ресторанов это обычные пользователи, владение определяется restaurants.owner_id.
    """
    async with session_factory() as session:
        users = {
            "admin": User(username="admin", full_name="Admin", role=RoleEnum.admin),
            "owner": User(username="owner", full_name="Owner", role=RoleEnum.customer),
            "other_owner": User(username="other_owner", full_name="Other Owner", role=RoleEnum.customer),
            "customer": User(username="customer", full_name="Customer", role=RoleEnum.customer),
            "other_customer": User(username="other_customer", full_name="Other Customer", role=RoleEnum.customer),
            "driver": User(username="driver", full_name="Driver", role=RoleEnum.driver),
            "other_driver": User(username="other_driver", full_name="Other Driver", role=RoleEnum.driver),
            "busy_driver": User(username="busy_driver", full_name="Busy Driver", role=RoleEnum.driver),
        }
        session.add_all(users.values())
        await session.flush()

        restaurant = Restaurant(name="Pizza Place", address="1 Main Street", owner_id=users["owner"].id)
        other_restaurant = Restaurant(name="Sushi Bar", address="2 Side Street", owner_id=users["other_owner"].id)
        session.add_all([restaurant, other_restaurant])
        await session.flush()

        burger = MenuItem(restaurant_id=restaurant.id, name="Burger", price=Decimal("10.00"))
        fries = MenuItem(restaurant_id=restaurant.id, name="Fries", price=Decimal("3.50"))
        sold_out = MenuItem(restaurant_id=restaurant.id, name="Soup", price=Decimal("5.00"), is_available=False)
        roll = MenuItem(restaurant_id=other_restaurant.id, name="Roll", price=Decimal("7.00"))
        session.add_all([burger, fries, sold_out, roll])

        drivers = {
            "driver": Driver(user_id=users["driver"].id, vehicle_type="bike", license_plate="AA-1"),
            "other_driver": Driver(user_id=users["other_driver"].id, vehicle_type="car", license_plate="BB-2"),
            "busy_driver": Driver(
                user_id=users["busy_driver"].id, vehicle_type="car", license_plate="CC-3", is_available=False
            ),
        }
        session.add_all(drivers.values())
        await session.commit()

        return SimpleNamespace(
            admin=Caller(users["admin"].id, RoleEnum.admin),
            owner=Caller(users["owner"].id, RoleEnum.customer),
            other_owner=Caller(users["other_owner"].id, RoleEnum.customer),
            customer=Caller(users["customer"].id, RoleEnum.customer),
            other_customer=Caller(users["other_customer"].id, RoleEnum.customer),
            driver=Caller(users["driver"].id, RoleEnum.driver),
            other_driver=Caller(users["other_driver"].id, RoleEnum.driver),
            busy_driver=Caller(users["busy_driver"].id, RoleEnum.driver),
            driver_id=drivers["driver"].id,
            other_driver_id=drivers["other_driver"].id,
            busy_driver_id=drivers["busy_driver"].id,
            restaurant_id=restaurant.id,
            other_restaurant_id=other_restaurant.id,
            burger_id=burger.id,
            fries_id=fries.id,
            sold_out_id=sold_out.id,
            roll_id=roll.id,
        )


@pytest.fixture
def place_order(db, actors):
    async def _place_order(customer=None):
        customer = customer or actors.customer
        order_in = OrderCreate(
            restaurant_id=actors.restaurant_id,
            items=[
                OrderItemCreate(menu_item_id=actors.burger_id, quantity=2),
                OrderItemCreate(menu_item_id=actors.fries_id, quantity=1, notes="extra salt"),
            ],
            delivery_fee=Decimal("2.50"),
            delivery_address="10 Downing Street",
        )
        return await create_order(db, order_in, customer_id=customer.id)

    return _place_order


@pytest.fixture
def ready_order(place_order, manager, actors):
    """Заказ, доведённый владельцем ресторана до ready_for_pickup."""
    async def _ready_order(driver_id=None):
        order = await place_order()
        await manager.transition(order.id, "preparing", actors.owner)
        return await manager.transition(order.id, "ready_for_pickup", actors.owner, driver_id=driver_id)

    return _ready_order
