"""Pytest configuration for tests that launch a real headless browser."""
import os

import pytest


# Browsers must be installed first: `playwright install chromium`
RUN_E2E = os.getenv("CHATME_E2E") == "1"


def pytest_collection_modifyitems(config, items):
    if RUN_E2E:
        return
    skip = pytest.mark.skip(reason="set CHATME_E2E=1 to run browser tests")
    for item in items:
        if "e2e" in item.keywords:
            item.add_marker(skip)


@pytest.fixture
def article_url() -> str:
    """A self-contained page, so no network access is needed."""
    return (
        "data:text/html,<html><head><title>Ducks</title>"
        "<style>p{color:red}</style></head>"
        "<body><h1>Ducks</h1><p>Ducks can <b>swim</b>.</p></body></html>"
    )
