from app.replenish.core.metrics import metrics
from tests.requisition_helpers import auth_headers, create_product, create_requisition, create_user, items_of


def test_fulfillment_outcomes_are_counted(client, db_session):
    metrics.reset()
    user = create_user(db_session)
    product = create_product(db_session, stock=1)
    requisition = create_requisition(db_session, created_by=user, lines=[{"product": product, "requested_qty": 4}])
    item = items_of(db_session, requisition.id)[0]
    url = f"/replenish/requisitions/{requisition.id}"

    client.patch(url, headers=auth_headers(user), json={"items": [{"id": str(item.id), "deliveredQty": 1}]})
    client.patch(url, headers=auth_headers(user), json={"items": [{"id": str(item.id), "deliveredQty": 3}]})

    response = client.get("/replenish/ops/metrics")
    assert response.status_code == 200
    content = response.text
    if not metrics.enabled:
        assert "metrics_disabled" in content
        return
    assert 'fulfillment_total{outcome="success"} 1.0' in content
    assert 'fulfillment_total{outcome="INSUFFICIENT_STOCK"} 1.0' in content
    assert 'stock_movements_total{type="out"} 1.0' in content
    assert "http_requests_total" in content
