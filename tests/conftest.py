from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest


@pytest.fixture()
def executor():
    pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="test-session")
    yield pool
    pool.shutdown(wait=True)
