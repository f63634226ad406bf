# civic_hierarchy/services/mobile.py
import phonenumbers

from civic_hierarchy.configs import configs

mobile_configs = configs.get("mobile", {})
REGION = mobile_configs.get("region", "SD")


def normalize_mobile_number(mobile_number: str) -> str:
    """
    Normalizes a mobile number to E.164 (+249XXXXXXXXX for the default region).
    National forms (0XXXXXXXXX, bare digits) are read in the configured region;
    numbers that parse to another country are rejected.
    Raises ValueError for anything that is not a valid number.
    """
    if not mobile_number:
        raise ValueError("Mobile number is required")

    try:
        parsed = phonenumbers.parse(mobile_number, REGION)
    except phonenumbers.NumberParseException as e:
        raise ValueError(f"Invalid mobile number format: {mobile_number}") from e

    if not phonenumbers.is_possible_number(parsed):
        raise ValueError(f"Invalid mobile number format: {mobile_number}")
    if not phonenumbers.is_valid_number(parsed):
        raise ValueError(f"Invalid mobile number: {mobile_number}")
    if parsed.country_code != phonenumbers.country_code_for_region(REGION):
        raise ValueError(f"Mobile number must be registered in {REGION}: {mobile_number}")

    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)
