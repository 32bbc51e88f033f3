import pytest
import torch


@pytest.fixture
def generator():
    gen = torch.Generator()
    gen.manual_seed(1234)
    return gen


class DeleteCounter:
    """Deleter that counts how many times it has been called."""

    def __init__(self):
        self.count = 0
        self.data = []

    def __call__(self, data):
        self.count += 1
        self.data.append(data)


@pytest.fixture
def counter():
    return DeleteCounter()
