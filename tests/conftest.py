import pytest

from pydispatchx import create_store, thunk_middleware

from .helpers import counter


@pytest.fixture
def store():
    return create_store(counter, [thunk_middleware], 0)


@pytest.fixture
def plain_store():
    return create_store(counter, [], 0)
