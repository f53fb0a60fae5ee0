import pytest

from shipscli.domain.models.common import ReferenceKind, create_cache_key
from shipscli.domain.models.references import (
    is_valid_bl_number,
    is_valid_booking_number,
    is_valid_container_number,
)
from shipscli.domain.models.shipment import (
    CreateResult,
    ListOptions,
    Shipment,
    ShipmentCreateRequest,
    ShipmentStatus,
    Vessel,
)


@pytest.mark.parametrize("number, valid", [
    ("MSCU1234567", True),
    ("mscu1234567", True),
    ("MSC1234567", False),
    ("MSCU123456", False),
])
def test_container_number_format(number, valid):
    assert is_valid_container_number(number) is valid


@pytest.mark.parametrize("number, valid", [
    ("MAEU12345678", True),
    ("MAEU123456789012", True),
    ("MAEU1234567", False),
    ("1234MAEU5678", False),
])
def test_bl_number_format(number, valid):
    assert is_valid_bl_number(number) is valid


@pytest.mark.parametrize("number, valid", [
    ("BK1234", True),
    ("A" * 20, True),
    ("BK123", False),
    ("BK-12345", False),
])
def test_booking_number_format(number, valid):
    assert is_valid_booking_number(number) is valid


def test_cache_key_is_sorted_and_skips_none():
    assert create_cache_key("list", status="PENDING", limit=10, offset=None) == "list|limit=10|status=PENDING"
    assert create_cache_key("list:active") == "list:active"


def test_reference_kind_names():
    assert ReferenceKind.BL.query_param == "bl_number"
    assert ReferenceKind.CONTAINER.cache_prefix == "shipment:container"


def test_create_request_body_is_flat():
    request = ShipmentCreateRequest(bl_number="MAEU123456789", booking_number="BK123456")

    assert request.has_reference() is True
    assert request.to_body() == {
        "shipment_type": "ocean",
        "bl_number": "MAEU123456789",
        "booking_number": "BK123456",
    }
    assert ShipmentCreateRequest().has_reference() is False


def test_list_options_drop_unset_filters():
    options = ListOptions(status="EN_ROUTE", limit=5, eta_from="2024-01-01")
    assert options.to_params() == {"status": "EN_ROUTE", "limit": 5, "eta_from": "2024-01-01"}


def test_shipment_to_dict_omits_empty_fields():
    shipment = Shipment(id="1", status=ShipmentStatus.ARRIVED, created_at="c", updated_at="u",
                        vessel=Vessel(name="EVER ACE"))

    assert shipment.to_dict() == {
        "id": "1",
        "status": "ARRIVED",
        "created_at": "c",
        "updated_at": "u",
        "vessel": {"name": "EVER ACE"},
    }
    assert shipment.is_discarded is False


def test_create_result_joins_warnings():
    shipment = Shipment(id="1", status=ShipmentStatus.PENDING, created_at="c", updated_at="u")
    result = CreateResult(shipment=shipment, source="created", credit_used=True, warnings=["one", "two"])

    assert result.warning == "one; two"
    assert result.to_dict()["warning"] == "one; two"
    assert "warning" not in CreateResult(shipment=shipment, source="cache", credit_used=False).to_dict()
