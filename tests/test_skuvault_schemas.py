from datetime import datetime, timezone
from decimal import Decimal

from skuvault_saas.schemas.skuvault import SkuVaultLocation, SkuVaultMovement, SkuVaultProduct


def test_product_accepts_string_numbers_and_blank_text() -> None:
    product = SkuVaultProduct.model_validate(
        {"Sku": "WIDGET-001", "Description": "", "Cost": "1.25", "RetailPrice": "", "Extra": "ignored"}
    )
    assert product.sku == "WIDGET-001"
    assert product.description is None
    assert product.cost == Decimal("1.25")
    assert product.retail_price is None


def test_location_blank_active_flag_defaults_to_true() -> None:
    assert SkuVaultLocation.model_validate({"LocationCode": "A1-01", "IsActive": ""}).is_active is True
    assert SkuVaultLocation.model_validate({"LocationCode": "A1-01", "IsActive": False}).is_active is False


def test_movement_normalizes_quantities_and_dates() -> None:
    movement = SkuVaultMovement.model_validate(
        {
            "Sku": "WIDGET-001",
            "Location": "MAIN--A1-01",
            "Quantity": "-3",
            "QuantityBefore": "10.0",
            "QuantityAfter": None,
            "TransactionDate": "2025-01-10T08:30:00",
            "TransactionNote": {"order": 17},
        }
    )
    assert movement.quantity == -3
    assert movement.quantity_before == 10
    assert movement.quantity_after == 0
    assert movement.transaction_date == datetime(2025, 1, 10, 8, 30, tzinfo=timezone.utc)
    assert movement.transaction_note == '{"order":17}'


def test_movement_converts_offset_dates_to_utc() -> None:
    movement = SkuVaultMovement.model_validate({"Sku": "A", "TransactionDate": "2025-01-10T03:30:00-05:00"})
    assert movement.transaction_date == datetime(2025, 1, 10, 8, 30, tzinfo=timezone.utc)
    assert movement.transaction_date.utcoffset().total_seconds() == 0


def test_movement_missing_date_defaults_to_now() -> None:
    before = datetime.now(tz=timezone.utc)
    movement = SkuVaultMovement.model_validate({"Sku": "A", "TransactionDate": ""})
    assert movement.transaction_date >= before
