"""Card number checks and masking.

Validation is advisory: the card network decides at authorization time. These
helpers never contact a provider and never raise on bad input.
"""

import re


MIN_PAN_LENGTH = 13
MAX_PAN_LENGTH = 19
MASK_CHAR = "*"

_SEPARATORS = re.compile(r"[\s-]")


def normalize_card_number(card_number: str) -> str:
    """Strip the space and hyphen separators users type between digit groups."""

    return _SEPARATORS.sub("", card_number or "")


def luhn_checksum_ok(digits: str) -> bool:
    total = 0
    for position, char in enumerate(reversed(digits)):
        digit = int(char)
        if position % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def validate_card(card_number: str) -> bool:
    """True when the number has a plausible PAN length and passes the Luhn check."""

    digits = normalize_card_number(card_number)
    if not digits or not digits.isascii() or not digits.isdigit():
        return False
    if not MIN_PAN_LENGTH <= len(digits) <= MAX_PAN_LENGTH:
        return False
    return luhn_checksum_ok(digits)


def mask_card_number(card_number: str) -> str:
    """Replace every character but the last four with `*`.

    Inputs shorter than four characters are masked entirely.
    """

    digits = normalize_card_number(card_number)
    if len(digits) < 4:
        return MASK_CHAR * len(digits)
    return MASK_CHAR * (len(digits) - 4) + digits[-4:]
