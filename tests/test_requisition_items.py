import uuid

from tests.requisition_helpers import (
    auth_headers,
    create_product,
    create_requisition,
    create_user,
    items_of,
    movement_count,
    status_of,
    stock_of,
)


def _setup(db_session, *, lines=None):
    user = create_user(db_session, role="ADMIN")
    product = create_product(db_session, stock=30)
    requisition = create_requisition(
        db_session,
        created_by=user,
        lines=lines or [{"product": product, "requested_qty": 10}, {"product": create_product(db_session, stock=30), "requested_qty": 2}],
    )
    return user, product, requisition, items_of(db_session, requisition.id)


def test_get_item_includes_product(client, db_session):
    user, product, requisition, items = _setup(db_session)

    response = client.get(f"/replenish/requisitions/items/{items[0].id}", headers=auth_headers(user))

    assert response.status_code == 200
    body = response.json()
    assert body["request_id"] == str(requisition.id)
    assert body["sku"] == product.sku
    assert body["requested_qty"] == 10


def test_item_update_writes_ledger_and_stock(client, db_session):
    user, product, requisition, items = _setup(db_session)

    response = client.patch(
        f"/replenish/requisitions/items/{items[0].id}",
        headers=auth_headers(user),
        json={"deliveredQty": 3},
    )

    assert response.status_code == 200
    assert response.json()["status"] == "partial"
    assert stock_of(db_session, product.id) == 27
    assert movement_count(db_session, requisition_id=requisition.id) == 1
    assert status_of(db_session, requisition.id) == "in_progress"


def test_cancelling_every_item_cancels_the_requisition(client, db_session):
    user, product, requisition, items = _setup(db_session)

    for item in items:
        response = client.patch(
            f"/replenish/requisitions/items/{item.id}",
            headers=auth_headers(user),
            json={"status": "cancelled"},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

    assert status_of(db_session, requisition.id) == "cancelled"
    assert stock_of(db_session, product.id) == 30


def test_delivered_and_cancelled_items_complete_the_requisition(client, db_session):
    user, product, requisition, items = _setup(db_session)

    client.patch(
        f"/replenish/requisitions/items/{items[1].id}",
        headers=auth_headers(user),
        json={"status": "cancelled"},
    )
    response = client.patch(
        f"/replenish/requisitions/items/{items[0].id}",
        headers=auth_headers(user),
        json={"delivered_qty": 10},
    )

    assert response.status_code == 200
    assert response.json()["status"] == "delivered"
    assert status_of(db_session, requisition.id) == "completed"


def test_item_update_on_finalized_requisition_fails(client, db_session):
    user, product, requisition, items = _setup(db_session)
    client.patch(f"/replenish/requisitions/{requisition.id}", headers=auth_headers(user), json={"status": "cancelled"})

    response = client.patch(
        f"/replenish/requisitions/items/{items[0].id}",
        headers=auth_headers(user),
        json={"deliveredQty": 1},
    )

    assert response.status_code == 409
    assert response.json()["code"] == "REQUISITION_IMMUTABLE"
    assert stock_of(db_session, product.id) == 30


def test_unknown_item_is_not_found(client, db_session):
    user = create_user(db_session)

    response = client.patch(
        f"/replenish/requisitions/items/{uuid.uuid4()}",
        headers=auth_headers(user),
        json={"deliveredQty": 1},
    )

    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


def test_unknown_item_status_is_rejected(client, db_session):
    user, product, requisition, items = _setup(db_session)

    response = client.patch(
        f"/replenish/requisitions/items/{items[0].id}",
        headers=auth_headers(user),
        json={"status": "lost"},
    )

    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"
