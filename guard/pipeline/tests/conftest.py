import pytest

from guard.identity import TokenService

from .support import TEST_AUDIENCE, TEST_ISSUER, TEST_SECRET


@pytest.fixture
def tokens():
    return TokenService(TEST_SECRET, TEST_ISSUER, TEST_AUDIENCE)
