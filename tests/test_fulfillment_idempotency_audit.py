from sqlalchemy import select

from app.replenish.db.models import AuditLog
from tests.requisition_helpers import (
    auth_headers,
    create_product,
    create_requisition,
    create_user,
    items_of,
    movement_count,
    stock_of,
)


def _setup(db_session):
    user = create_user(db_session, role="WAREHOUSE")
    product = create_product(db_session, stock=12)
    requisition = create_requisition(db_session, created_by=user, lines=[{"product": product, "requested_qty": 6}])
    return user, product, requisition, items_of(db_session, requisition.id)[0]


def _audit_rows(db_session, requisition_id):
    db_session.expire_all()
    return (
        db_session.execute(
            select(AuditLog).where(AuditLog.record_id == str(requisition_id)).order_by(AuditLog.created_at.asc())
        )
        .scalars()
        .all()
    )


def test_idempotency_key_replays_response(client, db_session):
    user, product, requisition, item = _setup(db_session)
    headers = auth_headers(user, **{"Idempotency-Key": "fulfill-1"})
    payload = {"items": [{"id": str(item.id), "deliveredQty": 2}]}

    first = client.patch(f"/replenish/requisitions/{requisition.id}", headers=headers, json=payload)
    replay = client.patch(f"/replenish/requisitions/{requisition.id}", headers=headers, json=payload)

    assert first.status_code == 200
    assert replay.status_code == 200
    assert replay.json() == first.json()
    assert replay.headers.get("X-Idempotency-Result") == "IDEMPOTENCY_REPLAY"
    assert stock_of(db_session, product.id) == 10
    assert len(_audit_rows(db_session, requisition.id)) == 1


def test_idempotency_key_reuse_with_other_payload_conflicts(client, db_session):
    user, product, requisition, item = _setup(db_session)
    headers = auth_headers(user, **{"Idempotency-Key": "fulfill-2"})
    client.patch(
        f"/replenish/requisitions/{requisition.id}",
        headers=headers,
        json={"items": [{"id": str(item.id), "deliveredQty": 2}]},
    )

    conflict = client.patch(
        f"/replenish/requisitions/{requisition.id}",
        headers=headers,
        json={"items": [{"id": str(item.id), "deliveredQty": 5}]},
    )

    assert conflict.status_code == 409
    assert conflict.json()["code"] == "IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD"
    assert stock_of(db_session, product.id) == 10


def test_failed_request_is_replayed_as_failure(client, db_session):
    user, product, requisition, item = _setup(db_session)
    headers = auth_headers(user, **{"Idempotency-Key": "fulfill-3"})
    payload = {"items": [{"id": str(item.id), "deliveredQty": 4}], "status": "completed"}

    first = client.patch(f"/replenish/requisitions/{requisition.id}", headers=headers, json=payload)
    replay = client.patch(f"/replenish/requisitions/{requisition.id}", headers=headers, json=payload)

    assert first.status_code == 409
    assert replay.status_code == 409
    assert replay.json()["code"] == first.json()["code"]
    assert replay.headers.get("X-Idempotency-Result") == "IDEMPOTENCY_REPLAY"


def test_audit_entry_summarizes_item_deltas(client, db_session):
    user, product, requisition, item = _setup(db_session)

    client.patch(
        f"/replenish/requisitions/{requisition.id}",
        headers=auth_headers(user),
        json={"items": [{"id": str(item.id), "deliveredQty": 3}], "note": "First run"},
    )

    rows = _audit_rows(db_session, requisition.id)
    assert len(rows) == 1
    entry = rows[0]
    assert entry.table_name == "requests"
    assert entry.action == "STATUS_CHANGE"
    assert entry.user_id == user.id
    assert entry.payload["from"] == "pending"
    assert entry.payload["to"] == "in_progress"
    assert entry.payload["note"] == "First run"
    [summary] = entry.payload["items"]
    assert summary["item_id"] == str(item.id)
    assert summary["delivered_before"] == 0
    assert summary["delivered_after"] == 3
    assert summary["move_delta"] == 3
    assert summary["movement_recorded"] is True


def test_repeat_call_audits_update_without_movement(client, db_session):
    user, product, requisition, item = _setup(db_session)
    payload = {"items": [{"id": str(item.id), "deliveredQty": 3}]}
    client.patch(f"/replenish/requisitions/{requisition.id}", headers=auth_headers(user), json=payload)

    client.patch(f"/replenish/requisitions/{requisition.id}", headers=auth_headers(user), json=payload)

    rows = _audit_rows(db_session, requisition.id)
    assert [row.action for row in rows] == ["STATUS_CHANGE", "UPDATE"]
    assert rows[1].payload["items"][0]["move_delta"] == 0
    assert rows[1].payload["items"][0]["movement_recorded"] is False
    assert movement_count(db_session, requisition_id=requisition.id) == 1


def test_failed_call_writes_no_audit_entry(client, db_session):
    user, product, requisition, item = _setup(db_session)

    response = client.patch(
        f"/replenish/requisitions/{requisition.id}",
        headers=auth_headers(user),
        json={"items": [{"id": str(item.id), "deliveredQty": 6}, {"id": str(item.id), "deliveredQty": 1}]},
    )

    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"
    assert _audit_rows(db_session, requisition.id) == []
