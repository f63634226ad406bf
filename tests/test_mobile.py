import pytest

from civic_hierarchy.services.mobile import normalize_mobile_number


@pytest.mark.parametrize(
    "raw",
    [
        "+249912345678",
        "249912345678",
        "00249912345678",
        "0912345678",
        "912345678",
        "+249 91 234 5678",
        "091-234-5678",
    ],
)
def test_accepted_formats_normalize_to_e164(raw):
    assert normalize_mobile_number(raw) == "+249912345678"


@pytest.mark.parametrize("raw", ["", "12345", "+2499123456789", "abc"])
def test_malformed_numbers_are_rejected(raw):
    with pytest.raises(ValueError):
        normalize_mobile_number(raw)


@pytest.mark.parametrize("raw", ["0000000000", "+249000000000", "000000000"])
def test_unallocated_numbers_are_rejected(raw):
    """Right length and country code, but no such number range exists."""
    with pytest.raises(ValueError):
        normalize_mobile_number(raw)


@pytest.mark.parametrize("raw", ["+447911123456", "+44912345678", "+12025550143"])
def test_numbers_from_other_countries_are_rejected(raw):
    with pytest.raises(ValueError):
        normalize_mobile_number(raw)
