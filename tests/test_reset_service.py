"""
Reset engine: ownership gate, bulk deactivation, audit row.
"""

import pytest

from config import engine
from app.models.activation_model import Activation
from app.models.license_reset_model import LicenseReset
from app.services.reset_service import LicenseResetService
from app.services.verification_service import LicenseVerificationService
from app.utils.errors import AlreadyActivatedElsewhere, LicenseNotFound, PurchaseVerificationFailed

from conftest import active_activations


@pytest.fixture
def reset_service(db, envato, clock):
    return LicenseResetService(db, envato, clock=clock)


@pytest.fixture
def verify_service(db, envato, item_policy, clock):
    return LicenseVerificationService(db, envato, item_policy=item_policy, clock=clock)


def _bind(db, lic, device_id, clock, active=True):
    db.add(Activation(license_id=lic.id, device_id=device_id, is_active=active, activated_at=clock()))
    db.commit()


def test_reset_clears_activation_and_logs(db, envato, clock, make_license, make_user, reset_service):
    lic = make_license()
    user = make_user()
    _bind(db, lic, "M1", clock)
    envato.purchases[("buyer-token", "ABC-1")] = 100
    clock.advance(hours=2)

    assert reset_service.reset("ABC-1", user, reason="new laptop") is True

    assert active_activations(db, lic.id) == []
    row = db.query(Activation).one()
    assert row.is_active is False
    assert row.updated_at == clock()

    resets = db.query(LicenseReset).all()
    assert len(resets) == 1
    assert (resets[0].license_id, resets[0].oauth_user_id, resets[0].reason) == (lic.id, user.id, "new laptop")
    assert resets[0].created_at == clock()


def test_reset_without_activation_still_logs(db, envato, make_license, make_user, reset_service):
    make_license()
    user = make_user()
    envato.purchases[("buyer-token", "ABC-1")] = 100

    reset_service.reset("ABC-1", user)

    assert db.query(LicenseReset).count() == 1
    assert db.query(LicenseReset).one().reason is None


def test_unknown_purchase_code(db, envato, make_user, reset_service):
    user = make_user()

    with pytest.raises(LicenseNotFound):
        reset_service.reset("NOPE", user)

    assert envato.calls == []


def test_missing_token_is_a_contract_violation(db, make_license, make_user, reset_service):
    make_license()
    user = make_user(access_token=None)

    with pytest.raises(RuntimeError):
        reset_service.reset("ABC-1", user)


def test_ownership_failure_changes_nothing(db, envato, clock, make_license, make_user, reset_service):
    lic = make_license()
    user = make_user()
    _bind(db, lic, "M1", clock)

    with pytest.raises(PurchaseVerificationFailed):
        reset_service.reset("ABC-1", user)

    assert len(active_activations(db, lic.id)) == 1
    assert db.query(LicenseReset).count() == 0


def test_ownership_item_mismatch_changes_nothing(db, envato, clock, make_license, make_user, reset_service):
    lic = make_license()
    user = make_user()
    _bind(db, lic, "M1", clock)
    envato.purchases[("buyer-token", "ABC-1")] = 555

    with pytest.raises(PurchaseVerificationFailed) as exc:
        reset_service.reset("ABC-1", user)

    assert exc.value.message == "Purchase code does not belong to this item"
    assert len(active_activations(db, lic.id)) == 1
    assert db.query(LicenseReset).count() == 0


def test_reset_repairs_multiple_active_rows(db, envato, clock, make_license, make_user, reset_service):
    # simulate a store without the one-active-row index
    index = next(i for i in Activation.__table__.indexes if i.name == "uq_activations_one_active")
    index.drop(bind=engine)

    lic = make_license()
    user = make_user()
    _bind(db, lic, "M1", clock)
    _bind(db, lic, "M2", clock)
    envato.purchases[("buyer-token", "ABC-1")] = 100

    reset_service.reset("ABC-1", user)

    assert active_activations(db, lic.id) == []
    assert db.query(LicenseReset).count() == 1


def test_bind_reset_rebind_scenario(db, envato, make_user, verify_service, reset_service):
    envato.sales["ABC-1"] = 100
    envato.purchases[("buyer-token", "ABC-1")] = 100
    user = make_user()

    verify_service.verify("ABC-1", "100", device_id="M1")
    with pytest.raises(AlreadyActivatedElsewhere):
        verify_service.verify("ABC-1", "100", device_id="M2")

    reset_service.reset("ABC-1", user)
    verify_service.verify("ABC-1", "100", device_id="M2")

    rows = db.query(Activation).order_by(Activation.id).all()
    assert [(r.device_id, r.is_active) for r in rows] == [("M1", False), ("M2", True)]
    assert db.query(LicenseReset).count() == 1
