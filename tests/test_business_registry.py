"""
Tests for business registration.
"""

import asyncio

import pytest

from onspot.adapters.memory_storage import InMemoryStorage
from onspot.domain.exceptions import ConflictError, NotFoundError, ValidationError
from onspot.services.business_registry import BusinessRegistry


class YieldingStorage(InMemoryStorage):
    async def get_document(self, collection, doc_id):
        await asyncio.sleep(0)
        return await super().get_document(collection, doc_id)


def _seed(launch_region=True) -> dict:
    data = {
        "user": {
            "owner": {"userId": "owner", "displayName": "Meera"},
            "other": {"userId": "other", "displayName": "Kiran"},
        },
        "crown-onspot": {"deliveryRange": {"value": 3000}},
    }
    if launch_region:
        data["crown-onspot"]["launchRegion"] = {"postalCode": ["560001", "560034"]}
    return data


def _payload(**overrides) -> dict:
    payload = {
        "businessId": "corner-bakery",
        "displayName": "Corner Bakery",
        "businessType": "bakery",
        "creator": "owner",
        "location": {
            "geoPoint": {"latitude": 12.9721, "longitude": 77.5933},
            "postalCode": "560001",
            "addressLine": "12 MG Road",
        },
        "openingTime": {"hour": 7, "minute": 0, "zone": 330},
        "closingTime": {"hour": 21, "minute": 0, "zone": 330},
        "openingDays": ["Monday", "Tuesday"],
        "deliveryRange": 2500,
        "passiveOpenEnable": False,
    }
    payload.update(overrides)
    return payload


def test_launch_region_lookup():
    registry = BusinessRegistry(InMemoryStorage(_seed()))

    assert asyncio.run(registry.check_launch_region("560034")) is True
    assert asyncio.run(registry.check_launch_region("110001")) is False


def test_launch_region_missing_is_not_found():
    registry = BusinessRegistry(InMemoryStorage(_seed(launch_region=False)))

    with pytest.raises(NotFoundError):
        asyncio.run(registry.check_launch_region("560001"))


def test_create_business():
    storage = InMemoryStorage(_seed())
    registry = BusinessRegistry(storage)

    async def scenario():
        result = await registry.create_business(_payload())
        business = await storage.get_document("business", result.business_ref_id)
        owner = await storage.get_document("user", "owner")
        claim = await storage.get_document("business-id", "corner-bakery")
        return result, business, owner, claim

    result, business, owner, claim = asyncio.run(scenario())

    assert result.available
    assert business["businessId"] == "corner-bakery"
    assert business["openingDays"] == [0, 1]
    assert business["holder"] == [{"userId": "owner", "role": "owner"}]
    assert owner["hasOnSpotBusinessAccount"] is True
    assert owner["businessRefId"] == result.business_ref_id
    assert claim == {"businessRefId": result.business_ref_id}


def test_create_outside_launch_region_writes_nothing():
    storage = InMemoryStorage(_seed())
    registry = BusinessRegistry(storage)
    payload = _payload(location={"geoPoint": {"latitude": 28.6, "longitude": 77.2}, "postalCode": "110001"})

    result = asyncio.run(registry.create_business(payload))

    assert not result.available
    assert "business" not in storage.snapshot()
    assert "business-id" not in storage.snapshot()


def test_create_without_launch_region_is_allowed():
    registry = BusinessRegistry(InMemoryStorage(_seed(launch_region=False)))
    assert asyncio.run(registry.create_business(_payload())).available


def test_duplicate_business_id_conflicts():
    storage = InMemoryStorage(_seed())
    registry = BusinessRegistry(storage)

    async def scenario():
        await registry.create_business(_payload())
        with pytest.raises(ConflictError, match="Business ID is not available"):
            await registry.create_business(_payload(creator="other"))

    asyncio.run(scenario())
    assert len(storage.snapshot()["business"]) == 1


def test_concurrent_creates_with_same_id_register_once():
    storage = YieldingStorage(_seed())
    registry = BusinessRegistry(storage)

    async def scenario():
        return await asyncio.gather(
            registry.create_business(_payload()),
            registry.create_business(_payload(creator="other")),
            return_exceptions=True,
        )

    results = asyncio.run(scenario())

    assert sum(isinstance(result, ConflictError) for result in results) == 1
    assert len(storage.snapshot()["business"]) == 1


def test_invalid_payload_raises_validation_error():
    registry = BusinessRegistry(InMemoryStorage(_seed()))

    with pytest.raises(ValidationError):
        asyncio.run(registry.create_business(_payload(openingTime={"hour": 30, "minute": 0})))
    with pytest.raises(ValidationError):
        asyncio.run(registry.create_business(_payload(businessId="")))


def test_create_raises_common_delivery_range():
    storage = InMemoryStorage(_seed())
    registry = BusinessRegistry(storage)

    async def scenario():
        await registry.create_business(_payload(deliveryRange=4500))
        return await storage.get_document("crown-onspot", "deliveryRange")

    assert asyncio.run(scenario()) == {"value": 4500}


def test_update_changes_identifier_and_keeps_partner_list():
    storage = InMemoryStorage(_seed())
    registry = BusinessRegistry(storage)

    async def scenario():
        created = await registry.create_business(_payload())
        ref = created.business_ref_id
        await storage.update_fields("business", ref, {"osd": [{"userId": "d1", "status": "ACCEPTED"}]})

        updated = await registry.update_business(ref, _payload(businessId="corner-bakery-2", displayName="CB"))
        business = await storage.get_document("business", ref)
        owner = await storage.get_document("user", "owner")
        snapshot = storage.snapshot()
        return updated, business, owner, snapshot

    updated, business, owner, snapshot = asyncio.run(scenario())

    assert updated.business_id == "corner-bakery-2"
    assert business["displayName"] == "CB"
    assert business["osd"] == [{"userId": "d1", "status": "ACCEPTED"}]
    assert owner["businessId"] == "corner-bakery-2"
    assert set(snapshot["business-id"]) == {"corner-bakery-2"}


def test_update_to_taken_identifier_conflicts():
    storage = InMemoryStorage(_seed())
    registry = BusinessRegistry(storage)

    async def scenario():
        await registry.create_business(_payload(businessId="taken"))
        mine = await registry.create_business(_payload(creator="other"))
        with pytest.raises(ConflictError):
            await registry.update_business(mine.business_ref_id, _payload(businessId="taken"))
        return await storage.get_document("business", mine.business_ref_id)

    assert asyncio.run(scenario())["businessId"] == "corner-bakery"


def test_update_unknown_business_is_not_found():
    registry = BusinessRegistry(InMemoryStorage(_seed()))

    with pytest.raises(NotFoundError):
        asyncio.run(registry.update_business("missing", _payload()))
