"""
Barcode allocation tests.

Verifies:
- Allocation continues above the highest numeric barcode in use
- Non-numeric barcodes are ignored
- Values never repeat, even when the product using one is not saved
"""

from sarupaa.services import barcode_service


def test_first_barcode_is_above_floor(db_session):
    assert barcode_service.next_barcode() == "1000000001"


def test_continues_after_highest_numeric_barcode(db_session, make_product):
    make_product("A", barcode="1000000001")
    make_product("B", barcode="1000000005")
    make_product("C", barcode="ABC-123")

    assert barcode_service.scan_max_barcode() == 1000000005
    assert barcode_service.next_barcode() == "1000000006"


def test_unicode_digit_barcodes_are_ignored(db_session, make_product):
    make_product("A", barcode="1000000005")
    make_product("B", barcode="²")
    make_product("C", barcode="١٢٣")

    assert barcode_service.scan_max_barcode() == 1000000005
    assert barcode_service.next_barcode() == "1000000006"


def test_allocations_strictly_increase(db_session):
    first = barcode_service.next_barcode()
    second = barcode_service.next_barcode()
    # Neither value was used by a product
    assert int(second) == int(first) + 1


def test_hand_entered_barcode_jumping_ahead_is_respected(db_session, make_product):
    barcode_service.next_barcode()
    make_product("Imported", barcode="1000000500")

    assert barcode_service.next_barcode() == "1000000501"


def test_next_barcode_endpoint(client, admin_headers, make_product):
    make_product("A", barcode="1000000010")

    resp = client.get("/api/products/next-barcode", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json == {"barcode": "1000000011"}
