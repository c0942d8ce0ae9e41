import uuid

from tests.requisition_helpers import auth_headers, create_product, create_requisition, create_user, items_of


def test_get_requisition_lists_items_in_order(client, db_session):
    store_user = create_user(db_session, role="STORE")
    first = create_product(db_session, stock=5, sku="SKU-A", name="Paper towels")
    second = create_product(db_session, stock=5, sku="SKU-B", name="Bleach")
    requisition = create_requisition(
        db_session,
        created_by=store_user,
        lines=[{"product": first, "requested_qty": 2}, {"product": second, "requested_qty": 1}],
    )

    response = client.get(f"/replenish/requisitions/{requisition.id}", headers=auth_headers(store_user))

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == str(requisition.id)
    assert body["status"] == "pending"
    assert body["created_by_user_id"] == str(store_user.id)
    assert body["assigned_to_user_id"] is None
    assert body["created_by"] == {"id": str(store_user.id), "name": store_user.name}
    assert body["assigned_to"] is None
    assert [item["sku"] for item in body["items"]] == ["SKU-A", "SKU-B"]
    assert body["items"][1]["product_name"] == "Bleach"
    assert body["items"][0]["unit"] == "UN"


def test_movements_are_listed_per_requisition(client, db_session):
    user = create_user(db_session)
    product = create_product(db_session, stock=10)
    requisition = create_requisition(db_session, created_by=user, lines=[{"product": product, "requested_qty": 5}])
    other = create_requisition(db_session, created_by=user, lines=[{"product": product, "requested_qty": 1}])
    item = items_of(db_session, requisition.id)[0]
    other_item = items_of(db_session, other.id)[0]

    client.patch(
        f"/replenish/requisitions/{requisition.id}",
        headers=auth_headers(user),
        json={"items": [{"id": str(item.id), "deliveredQty": 2}]},
    )
    client.patch(
        f"/replenish/requisitions/{other.id}",
        headers=auth_headers(user),
        json={"items": [{"id": str(other_item.id), "deliveredQty": 1}]},
    )

    response = client.get(f"/replenish/requisitions/{requisition.id}/movements", headers=auth_headers(user))

    assert response.status_code == 200
    rows = response.json()["rows"]
    assert len(rows) == 1
    assert rows[0]["type"] == "out"
    assert rows[0]["ref_type"] == "request"
    assert rows[0]["ref_id"] == str(requisition.id)
    assert rows[0]["request_item_id"] == str(item.id)
    assert rows[0]["cumulative_qty"] == 2
    assert rows[0]["created_by_user_id"] == str(user.id)


def test_unknown_requisition_is_not_found(client, db_session):
    user = create_user(db_session)

    response = client.get(f"/replenish/requisitions/{uuid.uuid4()}", headers=auth_headers(user))

    assert response.status_code == 404
    body = response.json()
    assert body["code"] == "NOT_FOUND"
    assert body["details"]["resource"] == "requisition"


def test_malformed_requisition_id_is_validation_error(client, db_session):
    user = create_user(db_session)

    response = client.get("/replenish/requisitions/not-a-uuid", headers=auth_headers(user))

    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_assignee_name_is_returned_after_assign_to_me(client, db_session):
    store_user = create_user(db_session, role="STORE")
    warehouse = create_user(db_session, role="WAREHOUSE")
    product = create_product(db_session, stock=5)
    requisition = create_requisition(db_session, created_by=store_user, lines=[{"product": product, "requested_qty": 1}])

    response = client.patch(
        f"/replenish/requisitions/{requisition.id}",
        headers=auth_headers(warehouse),
        json={"status": "in_progress", "assignToMe": True},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["assigned_to"] == {"id": str(warehouse.id), "name": warehouse.name}
    assert body["created_by"]["name"] == store_user.name
