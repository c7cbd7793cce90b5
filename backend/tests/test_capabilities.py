import pytest

from billing import AdmissionCapabilities, AdmissionReadOnly, Mutation


def test_pending_admission_allows_everything():
    caps = AdmissionCapabilities.for_status("pending")

    assert not caps.read_only
    for mutation in Mutation:
        assert caps.allows(mutation)
        caps.require(mutation)


def test_missing_status_counts_as_pending():
    assert AdmissionCapabilities.for_status(None) == AdmissionCapabilities.for_status("pending")


@pytest.mark.parametrize("status", ["normal", "referral", "death"])
def test_discharged_admission_is_read_only(status):
    caps = AdmissionCapabilities.for_status(status)

    assert caps.read_only
    assert status in caps.reason
    with pytest.raises(AdmissionReadOnly) as exc:
        caps.require(Mutation.ADD)
    assert exc.value.status_code == 423
    assert exc.value.message.startswith("Cannot add")


def test_unknown_discharge_status_is_rejected():
    with pytest.raises(ValueError):
        AdmissionCapabilities.for_status("referal")


def test_to_dict_shape():
    data = AdmissionCapabilities.for_status("death").to_dict()

    assert data == {
        "can_add": False,
        "can_edit": False,
        "can_delete": False,
        "can_restore": False,
        "read_only": True,
        "reason": "Patient discharged (death)",
    }
