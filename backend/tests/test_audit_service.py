from fulfillment.services import audit_service
from fulfillment.services.concurrency import atomic


def test_format_values_sorted_key_value():
    assert audit_service.format_values({"status": "Pending", "id": 3}) == "id=3, status=Pending"
    assert audit_service.format_values(None) is None


def test_record_defaults_actor_from_config(db_session):
    with atomic():
        entry = audit_service.record("Order", "UPDATE", 7, old_values={"status": "Pending"})

    assert entry.actor == "test-suite"
    assert entry.primary_key == "7"
    assert entry.old_values == "status=Pending"
    assert entry.new_values is None
    assert entry.created_at is not None


def test_list_entries_filters_newest_first(db_session):
    with atomic():
        audit_service.record("Order", "INSERT", 1, actor="a")
        audit_service.record("Order", "UPDATE", 1, actor="b")
        audit_service.record("Product", "STOCK_ALERT", 2, actor="c")

    assert [e.actor for e in audit_service.list_entries()] == ["c", "b", "a"]
    assert [e.actor for e in audit_service.list_entries(table_name="Order")] == ["b", "a"]
    assert [e.actor for e in audit_service.list_entries(primary_key=1, operation="INSERT")] == ["a"]
    assert len(audit_service.list_entries(limit=1)) == 1


def test_record_is_rolled_back_with_its_unit_of_work(db_session):
    try:
        with atomic():
            audit_service.record("Order", "INSERT", 1)
            raise RuntimeError("boom")
    except RuntimeError:
        pass

    assert audit_service.list_entries() == []
