import pytest

from peppercommit.lib.crypto import PepperGenerator

TEST_INPUT = "alice-bet-heads"
TEST_PEPPER = bytes(range(16))
TEST_COMMITMENT_HEX = (
    "3d904535f60bf7c425e3410bde7c02af2f0d03d4ca7814643acd50ffb627168c"
    "e626f5ef7aaeb17f82ac51536e8e9cb3faf4145ae019393037a6f0a1f93a0f33"
)
TEST_COMMITMENT_B64 = (
    "PZBFNfYL98Ql40EL3nwCry8NA9TKeBRkOs1Q/7YnFozmJvXveq6xf4KsUVNujpyz+vQUWuAZOTA3pvCh+ToPMw=="
)


class CountingEntropy:
    """Deterministic stand-in for the OS random source.

    Call k returns bytes k, k+1, ... (mod 256), so successive peppers differ.
    """
    def __init__(self):
        self.calls = 0

    def __call__(self, n):
        start = self.calls
        self.calls += 1
        return bytes((start + i) % 256 for i in range(n))


@pytest.fixture
def fixed_generator():
    return PepperGenerator(lambda n: bytes(range(n)))


@pytest.fixture
def counting_generator():
    return PepperGenerator(CountingEntropy())
