import pytest

from campusclear.interview.testing import create_mock_session_setup


@pytest.fixture
def mock_setup():
    return create_mock_session_setup()
