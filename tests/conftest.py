"""Root test configuration: isolate settings from the developer's environment"""

import os

import pytest


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Drop MDSITE_* env vars so load_config sees defaults unless a test sets them."""
    for name in list(os.environ):
        if name.startswith("MDSITE_"):
            monkeypatch.delenv(name)
