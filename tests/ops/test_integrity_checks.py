import uuid

from app.ops.integrity_checks import (
    check_item_quantity_bounds,
    check_ledger_matches_delivered,
    check_negative_stock,
    check_requisition_status,
    run_integrity_checks,
)
from app.replenish.db.models import InventoryMovement
from tests.requisition_helpers import auth_headers, create_product, create_requisition, create_user, items_of


def test_clean_state_after_fulfillment_has_no_findings(client, db_session):
    user = create_user(db_session)
    product = create_product(db_session, stock=20)
    requisition = create_requisition(
        db_session,
        created_by=user,
        lines=[{"product": product, "requested_qty": 5}, {"product": product, "requested_qty": 3}],
    )
    items = items_of(db_session, requisition.id)
    client.patch(
        f"/replenish/requisitions/{requisition.id}",
        headers=auth_headers(user),
        json={"items": [{"id": str(items[0].id), "deliveredQty": 2}]},
    )
    client.patch(
        f"/replenish/requisitions/{requisition.id}",
        headers=auth_headers(user),
        json={"status": "completed"},
    )

    db_session.expire_all()
    assert run_integrity_checks(db_session, [requisition.id]) == []


def test_bounds_and_stock_ok(client, db_session):
    user = create_user(db_session)
    product = create_product(db_session, stock=0)
    requisition = create_requisition(db_session, created_by=user, lines=[{"product": product, "requested_qty": 1}])

    assert check_item_quantity_bounds(db_session, [requisition.id]) == []
    assert check_negative_stock(db_session) == []


def test_ledger_mismatch_is_reported(client, db_session):
    user = create_user(db_session)
    product = create_product(db_session, stock=20)
    requisition = create_requisition(db_session, created_by=user, lines=[{"product": product, "requested_qty": 5}])
    item = items_of(db_session, requisition.id)[0]
    db_session.add(
        InventoryMovement(
            id=uuid.uuid4(),
            product_id=product.id,
            qty=2,
            type="out",
            ref_type="request",
            ref_id=str(requisition.id),
            request_item_id=item.id,
            cumulative_qty=2,
        )
    )
    db_session.commit()

    findings = check_ledger_matches_delivered(db_session, [requisition.id])

    assert len(findings) == 1
    assert findings[0].entity_id == str(item.id)
    assert findings[0].details == {"delivered_qty": 0, "ledger_qty": 2}


def test_completed_requisition_with_short_item_is_reported(client, db_session):
    user = create_user(db_session)
    product = create_product(db_session, stock=20)
    requisition = create_requisition(
        db_session,
        created_by=user,
        lines=[{"product": product, "requested_qty": 5, "delivered_qty": 3, "status": "partial"}],
        status="completed",
    )

    findings = check_requisition_status(db_session, [requisition.id])

    assert len(findings) == 1
    assert findings[0].check_id == "requisition_status"
    assert findings[0].details["items"][0]["delivered_qty"] == 3
