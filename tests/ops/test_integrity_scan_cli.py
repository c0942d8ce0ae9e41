import json

from app.ops.integrity_scan import run_scan
from tests.requisition_helpers import create_product, create_requisition, create_user


def test_integrity_scan_no_findings(client, db_session, capsys):
    user = create_user(db_session)
    product = create_product(db_session, stock=3)
    create_requisition(db_session, created_by=user, lines=[{"product": product, "requested_qty": 2}])

    database_url = str(db_session.get_bind().url)
    exit_code = run_scan("all", "json", False, database_url=database_url)
    payload = json.loads(capsys.readouterr().out)

    assert exit_code == 0
    assert payload["summary"]["critical"] == 0


def test_integrity_scan_critical_exit(client, db_session, capsys):
    user = create_user(db_session)
    product = create_product(db_session, stock=3)
    requisition = create_requisition(
        db_session,
        created_by=user,
        lines=[{"product": product, "requested_qty": 2, "delivered_qty": 1, "status": "partial"}],
        status="completed",
    )

    database_url = str(db_session.get_bind().url)
    exit_code = run_scan(str(requisition.id), "text", True, database_url=database_url)
    output = capsys.readouterr().out

    assert exit_code == 1
    assert "Integrity Scan Report" in output
    assert "requisition_status" in output
