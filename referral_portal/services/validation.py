"""Form field validation shared by the account and referral services.

Rules are checked in order and the first failure wins, so the user sees
one message at a time.
"""

from referral_portal.services.errors import ReferralValidationError


def clean_text(data, key):
    """Read a form value as a stripped string ("" when missing)."""
    value = data.get(key)
    if value is None:
        return ""
    return str(value).strip()


def validate_min_lengths(data, rules):
    """Trim each field and enforce its minimum length.

    Args:
        data: Mapping of raw form values.
        rules: Sequence of (key, min_length, message).

    Returns:
        dict of key -> trimmed value for every rule.

    Raises:
        ReferralValidationError: with the message of the first failing rule.
    """
    cleaned = {}
    for key, min_length, message in rules:
        value = clean_text(data, key)
        if len(value) < min_length:
            raise ReferralValidationError(message)
        cleaned[key] = value
    return cleaned


def parse_positive_int(value, message):
    """Coerce a form value to a positive int or raise with `message`.

    Integral strings are parsed exactly; "3.0"-style values are accepted
    through a float fallback.
    """
    if isinstance(value, bool) or value is None:
        raise ReferralValidationError(message)
    raw = str(value).strip()
    try:
        number = int(raw)
    except ValueError:
        try:
            as_float = float(raw)
        except ValueError:
            raise ReferralValidationError(message)
        if not as_float.is_integer():
            raise ReferralValidationError(message)
        number = int(as_float)
    if number <= 0:
        raise ReferralValidationError(message)
    return number
