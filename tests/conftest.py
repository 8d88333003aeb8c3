import pytest

from collabsync import output


@pytest.fixture(autouse=True)
def _loud_console():
    """The console is module-level; undo --quiet from earlier tests."""
    output.set_quiet(False)
    yield
    output.set_quiet(False)
