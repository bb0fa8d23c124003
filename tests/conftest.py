import pytest

from src.output_manager import get_output_manager


@pytest.fixture(autouse=True)
def quiet_output():
    output = get_output_manager()
    previous = output.quiet_mode
    output.quiet_mode = True
    yield output
    output.quiet_mode = previous
