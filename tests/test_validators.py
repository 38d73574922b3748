import pytest

from exceptions import ValidationException
from validators import split_full_name, validate_email, validate_equity_percent, validate_phone_number


def test_split_full_name():
    assert split_full_name("Dan Smith") == ("Dan", "Smith")
    assert split_full_name("  Maria de la Cruz ") == ("Maria", "de la Cruz")


@pytest.mark.parametrize("name", ["Madonna", "", "   ", None])
def test_single_token_names_are_rejected(name):
    with pytest.raises(ValidationException):
        split_full_name(name)


def test_email_and_phone():
    validate_email("dan@example.com")
    validate_phone_number("+1 (555) 010-0100")
    with pytest.raises(ValidationException):
        validate_email("dan-at-example")
    with pytest.raises(ValidationException):
        validate_phone_number("call me")


def test_equity_format():
    validate_equity_percent("0.66%")
    with pytest.raises(ValidationException):
        validate_equity_percent("0.66")
