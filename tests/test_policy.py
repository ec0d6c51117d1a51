import pytest

from food_delivery.models import OrderStatusEnum as S, RoleEnum
from food_delivery.services.policy import (
    Caller,
    OrderSnapshot,
    can_assign_driver,
    can_transition,
    can_view_order,
)

ADMIN = Caller(1, RoleEnum.admin)
OWNER = Caller(2, RoleEnum.customer)
CUSTOMER = Caller(3, RoleEnum.customer)
DRIVER = Caller(4, RoleEnum.driver)
STRANGER = Caller(5, RoleEnum.customer)
OTHER_DRIVER = Caller(6, RoleEnum.driver)


def snapshot(status, driver_user_id=None):
    return OrderSnapshot(
        id=100,
        status=status,
        customer_id=CUSTOMER.id,
        restaurant_owner_id=OWNER.id,
        driver_id=40 if driver_user_id else None,
        driver_user_id=driver_user_id,
    )


@pytest.mark.parametrize("status", list(S))
@pytest.mark.parametrize("target", list(S))
def test_admin_is_always_permitted(status, target):
    assert can_transition(ADMIN, snapshot(status), target)


@pytest.mark.parametrize("status,target,allowed", [
    (S.pending, S.preparing, True),
    (S.preparing, S.ready_for_pickup, True),
    (S.pending, S.cancelled, True),
    (S.ready_for_pickup, S.cancelled, True),
    (S.ready_for_pickup, S.out_for_delivery, False),
    (S.out_for_delivery, S.delivered, False),
])
def test_restaurant_owner(status, target, allowed):
    assert can_transition(OWNER, snapshot(status), target) is allowed


def test_owner_of_another_restaurant_is_denied():
    assert not can_transition(STRANGER, snapshot(S.pending), S.preparing)


@pytest.mark.parametrize("status,target,allowed", [
    (S.ready_for_pickup, S.out_for_delivery, True),
    (S.out_for_delivery, S.delivered, True),
    (S.out_for_delivery, S.cancelled, True),
    (S.ready_for_pickup, S.cancelled, True),
    (S.preparing, S.ready_for_pickup, False),
])
def test_assigned_driver(status, target, allowed):
    assert can_transition(DRIVER, snapshot(status, driver_user_id=DRIVER.id), target) is allowed


def test_unassigned_driver_is_denied():
    order = snapshot(S.out_for_delivery, driver_user_id=DRIVER.id)
    assert not can_transition(OTHER_DRIVER, order, S.delivered)


def test_driver_role_is_required_for_driver_rule():
    order = snapshot(S.out_for_delivery, driver_user_id=STRANGER.id)
    assert not can_transition(STRANGER, order, S.delivered)


@pytest.mark.parametrize("status,allowed", [
    (S.pending, True),
    (S.preparing, True),
    (S.ready_for_pickup, False),
    (S.out_for_delivery, False),
])
def test_customer_can_only_cancel_before_pickup(status, allowed):
    assert can_transition(CUSTOMER, snapshot(status), S.cancelled) is allowed


def test_customer_cannot_advance_own_order():
    assert not can_transition(CUSTOMER, snapshot(S.pending), S.preparing)


def test_other_customer_cannot_cancel():
    assert not can_transition(STRANGER, snapshot(S.pending), S.cancelled)


def test_can_assign_driver():
    order = snapshot(S.ready_for_pickup)
    assert can_assign_driver(ADMIN, order)
    assert can_assign_driver(OWNER, order)
    assert not can_assign_driver(CUSTOMER, order)
    assert not can_assign_driver(DRIVER, order)


def test_can_view_order():
    order = snapshot(S.out_for_delivery, driver_user_id=DRIVER.id)
    assert can_view_order(ADMIN, order)
    assert can_view_order(OWNER, order)
    assert can_view_order(CUSTOMER, order)
    assert can_view_order(DRIVER, order)
    assert not can_view_order(STRANGER, order)
    assert not can_view_order(OTHER_DRIVER, order)


def test_customer_view_requires_customer_role():
    order = snapshot(S.pending)
    same_id_driver = Caller(CUSTOMER.id, RoleEnum.driver)
    assert not can_view_order(same_id_driver, order)
