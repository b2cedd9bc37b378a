import pytest

from dataset import sample_taxonomy, sample_transactions


@pytest.fixture
def transactions():
    return sample_transactions()


@pytest.fixture
def taxonomy():
    return sample_taxonomy()
