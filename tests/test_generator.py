"""Tests for password generation and strength checks."""

import string

import pytest

from pwdvault import config
from pwdvault.exceptions import InvalidParameters
from pwdvault.generator import check_strength, generate_password


class TestGeneratePassword:

    def test_default_length_and_classes(self):
        password = generate_password()
        assert len(password) == config.PASSWORD_GENERATOR_DEFAULT_LENGTH
        assert any(c.isupper() for c in password)
        assert any(c.islower() for c in password)
        assert any(c.isdigit() for c in password)
        assert any(c in string.punctuation for c in password)

    def test_digits_only(self):
        password = generate_password(20, uppercase=False, lowercase=False, symbols=False)
        assert len(password) == 20
        assert password.isdigit()

    def test_exclude_ambiguous(self):
        for _ in range(20):
            password = generate_password(64, exclude_ambiguous=True)
            assert not set(password) & set(config.PASSWORD_GENERATOR_AMBIGUOUS_CHARS)

    def test_passwords_differ(self):
        assert generate_password() != generate_password()

    @pytest.mark.parametrize("length", [0, 7, 129])
    def test_length_bounds(self, length):
        with pytest.raises(InvalidParameters):
            generate_password(length)

    def test_no_character_class(self):
        with pytest.raises(InvalidParameters):
            generate_password(uppercase=False, lowercase=False, digits=False, symbols=False)


class TestCheckStrength:

    @pytest.mark.parametrize("password, expected", [
        ("Sh0rt!", False),
        ("alllowercase1!", False),
        ("ALLUPPERCASE1!", False),
        ("NoDigitsHere!!", False),
        ("NoSymbols12345", False),
        ("G00d-Passphrase", True),
    ])
    def test_rules(self, password, expected):
        strong, message = check_strength(password)
        assert strong is expected
        assert message

    def test_generated_passwords_are_strong(self):
        assert check_strength(generate_password(16))[0]
