from __future__ import annotations

import pytest

from sketchci.reporter import ActionReporter, FailureTally
from sketchci.ui.console import Console


@pytest.fixture
def tally():
    return FailureTally()


@pytest.fixture
def reporter(tally):
    return ActionReporter(tally, Console())
