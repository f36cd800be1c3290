"""Card number validation and masking."""

import pytest

from framepay.services.payments.cards import mask_card_number, normalize_card_number, validate_card


@pytest.mark.parametrize(
    "number",
    ["4242424242424242", "5555555555554444", "378282246310005", "4242 4242 4242 4242", "4242-4242-4242-4242"],
)
def test_known_test_pans_are_valid(number):
    assert validate_card(number) is True


def test_single_digit_change_fails_luhn():
    assert validate_card("4242424242424241") is False


def test_validation_is_deterministic():
    assert validate_card("4242424242424242") == validate_card("4242424242424242")


@pytest.mark.parametrize("number", ["", "   ", "4242abcd42424242", "424242424242", "4" * 20, "４２４２４２４２４２４２４２４２"])
def test_malformed_numbers_are_rejected(number):
    assert validate_card(number) is False


def test_normalize_strips_separators_only():
    assert normalize_card_number(" 4242-4242 ") == "42424242"


def test_mask_keeps_last_four():
    assert mask_card_number("4242424242424242") == "************4242"
    assert mask_card_number("4242 4242 4242 4242") == "************4242"


def test_mask_short_input_is_fully_masked():
    assert mask_card_number("123") == "***"
    assert mask_card_number("") == ""
