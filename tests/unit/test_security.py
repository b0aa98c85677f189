"""
Unit Tests for credential checks.
"""

import pytest

from termrelay.backend.exception import AuthenticationError
from termrelay.backend.security import ANONYMOUS_CREDENTIAL, authenticate, safe_token_compare


class TestSafeTokenCompare:

    def test_equal_tokens(self):
        assert safe_token_compare("abc", "abc") is True

    @pytest.mark.parametrize("candidate", ["", "ab", "abcd", "ABC", "abc "])
    def test_unequal_tokens(self, candidate):
        assert safe_token_compare(candidate, "abc") is False


class TestAuthenticate:

    def test_auth_disabled_uses_anonymous_credential(self):
        assert authenticate(None, "") == ANONYMOUS_CREDENTIAL

    def test_auth_disabled_keeps_presented_token(self):
        assert authenticate("mine", "") == "mine"

    def test_correct_token_is_the_credential(self):
        assert authenticate("secret", "secret") == "secret"

    def test_missing_token_rejected(self):
        with pytest.raises(AuthenticationError):
            authenticate(None, "secret")

    def test_wrong_token_rejected(self):
        with pytest.raises(AuthenticationError) as exc_info:
            authenticate("guess", "secret")
        assert exc_info.value.code == "AUTHENTICATION_ERROR"
