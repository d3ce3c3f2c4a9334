import pytest

from pipegate.ui.console import Console


@pytest.fixture
def console():
    """Console without per-step progress lines."""
    return Console(quiet=True)
