"""
License verification engine: gate ordering, license upsert, binding.
"""

import pytest

from app.models.activation_model import Activation
from app.models.license_model import BindingMode, License
from app.services.item_policy import ItemPolicyResolver
from app.services.verification_service import LicenseVerificationService
from app.utils.errors import (
    AlreadyActivatedElsewhere,
    InvalidItemId,
    LicenseInactive,
    MissingDeviceId,
    MissingNetworkAddress,
    PurchaseVerificationFailed,
)

from conftest import active_activations


@pytest.fixture
def service(db, envato, item_policy, clock):
    return LicenseVerificationService(db, envato, item_policy=item_policy, clock=clock)


def _license(db, code="ABC-1"):
    db.expire_all()
    return db.query(License).filter(License.purchase_code == code).first()


def test_first_verify_creates_license_and_activation(db, envato, service, clock):
    envato.sales["ABC-1"] = 100

    assert service.verify("ABC-1", "100", device_id="M1") is True

    lic = _license(db)
    assert lic.is_active is True
    assert lic.item_id == "100"
    assert lic.binding_mode == BindingMode.device
    assert lic.created_at == clock()
    rows = active_activations(db, lic.id)
    assert [r.device_id for r in rows] == ["M1"]


def test_verify_is_idempotent(db, envato, service):
    envato.sales["ABC-1"] = 100

    service.verify("ABC-1", 100, device_id="M1")
    service.verify("ABC-1", 100, device_id="M1")

    assert db.query(License).count() == 1
    assert db.query(Activation).count() == 1


def test_conflicting_device_is_rejected(db, envato, service):
    envato.sales["ABC-1"] = 100
    service.verify("ABC-1", "100", device_id="M1")

    with pytest.raises(AlreadyActivatedElsewhere):
        service.verify("ABC-1", "100", device_id="M2")

    lic = _license(db)
    assert [r.device_id for r in active_activations(db, lic.id)] == ["M1"]
    assert db.query(Activation).count() == 1


def test_device_item_requires_device_id_even_with_address(db, envato, service):
    envato.sales["ABC-1"] = 100

    with pytest.raises(MissingDeviceId):
        service.verify("ABC-1", "100", device_id=None, network_address="203.0.113.7")

    # nothing committed when a gate fails
    assert db.query(License).count() == 0
    assert db.query(Activation).count() == 0


def test_network_item_requires_address_even_with_device(db, envato, service):
    envato.sales["NET-1"] = 200

    with pytest.raises(MissingNetworkAddress):
        service.verify("NET-1", "200", device_id="M1", network_address=None)


def test_network_item_binds_address(db, envato, service):
    envato.sales["NET-1"] = 200

    service.verify("NET-1", "200", device_id="ignored", network_address="203.0.113.7")

    lic = _license(db, "NET-1")
    row = active_activations(db, lic.id)[0]
    assert row.network_address == "203.0.113.7"
    assert row.device_id is None


def test_unknown_item_rejected_before_marketplace_call(db, envato, service):
    envato.sales["ABC-1"] = 999

    with pytest.raises(InvalidItemId):
        service.verify("ABC-1", "999", device_id="M1")

    assert envato.calls == []
    assert db.query(License).count() == 0


def test_item_mismatch_fails_without_writes(db, envato, service):
    envato.sales["ABC-1"] = 200

    with pytest.raises(PurchaseVerificationFailed) as exc:
        service.verify("ABC-1", "100", device_id="M1")

    assert exc.value.context == {"expected_item_id": "100", "purchase_item_id": "200"}
    assert db.query(License).count() == 0
    assert db.query(Activation).count() == 0


def test_marketplace_failure_propagates(db, envato, service):
    with pytest.raises(PurchaseVerificationFailed) as exc:
        service.verify("NOPE", "100", device_id="M1")

    assert exc.value.message == "Purchase code not found or invalid."
    assert db.query(License).count() == 0


def test_inactive_license_is_rejected(db, envato, service, make_license):
    make_license(is_active=False)
    envato.sales["ABC-1"] = 100

    with pytest.raises(LicenseInactive):
        service.verify("ABC-1", "100", device_id="M1")

    assert db.query(Activation).count() == 0


def test_drift_reconciliation_updates_item_and_mode(db, envato, make_license, clock):
    make_license(item_id="100", mode=BindingMode.device)
    envato.sales["ABC-1"] = 300
    clock.advance(days=1)

    policy = ItemPolicyResolver({"100": "device", "300": "network"})
    service = LicenseVerificationService(db, envato, item_policy=policy, clock=clock)

    service.verify("ABC-1", "300", network_address="203.0.113.7")

    lic = _license(db)
    assert lic.item_id == "300"
    assert lic.binding_mode == BindingMode.network
    assert lic.updated_at == clock()
    assert active_activations(db, lic.id)[0].network_address == "203.0.113.7"


# =============================================================================
# Concurrent first verification and activation
# =============================================================================

def test_lost_license_insert_race_uses_existing_row(db, envato, service, clock):
    envato.sales["ABC-1"] = 100
    real_find = service.licenses.find_by_purchase_code
    state = {"first": True}

    def find(purchase_code, for_update=False):
        if state["first"]:
            # a concurrent request commits the license between lookup and insert
            state["first"] = False
            db.add(License(
                purchase_code=purchase_code, item_id="100", binding_mode=BindingMode.device,
                is_active=True, created_at=clock(), updated_at=clock(),
            ))
            db.commit()
            return None
        return real_find(purchase_code, for_update=for_update)

    service.licenses.find_by_purchase_code = find

    assert service.verify("ABC-1", "100", device_id="M1") is True

    lic = _license(db)
    assert db.query(License).count() == 1
    assert db.query(Activation).count() == 1
    assert active_activations(db, lic.id)[0].device_id == "M1"


def test_drift_survives_lost_activation_race(db, envato, make_license, clock):
    lic = make_license(item_id="100", mode=BindingMode.device)
    license_id = lic.id
    # the competing request's activation is already in place
    db.add(Activation(license_id=license_id, device_id="M1", is_active=True, activated_at=clock()))
    db.commit()
    envato.sales["ABC-1"] = 300

    policy = ItemPolicyResolver({"100": "device", "300": "device"})
    service = LicenseVerificationService(db, envato, item_policy=policy, clock=clock)
    activations = service.binding.activations
    real_find = activations.find_active_by_license
    state = {"first": True}

    def find_active(lid):
        if state["first"]:
            state["first"] = False
            return None
        return real_find(lid)

    activations.find_active_by_license = find_active

    assert service.verify("ABC-1", "300", device_id="M1") is True

    lic = _license(db)
    assert lic.item_id == "300"
    assert [a.device_id for a in active_activations(db, license_id)] == ["M1"]
