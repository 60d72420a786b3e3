"""Shared fixtures for mnemo tests."""

import pytest

from mnemo.core.config import Config
from mnemo.pressure.intervention import NullNotifier
from mnemo.storage.kv import MemoryKVStore
from mnemo.system import MemorySystem
from mnemo.working.memory import WorkingMemory


@pytest.fixture
def tmp_dir(tmp_path):
    """Provide a temporary directory that persists for the test."""
    return tmp_path


@pytest.fixture
def config(tmp_dir):
    """Provide a Config pointing at a temp directory."""
    cfg = Config.from_data_dir(tmp_dir)
    cfg.ensure_directories()
    return cfg


@pytest.fixture
def kv():
    """Provide an empty in-memory KV store."""
    return MemoryKVStore()


@pytest.fixture
def memory(config, kv):
    """Provide a WorkingMemory over an in-memory store."""
    return WorkingMemory(config, kv)


@pytest.fixture
def notifier():
    return NullNotifier()


@pytest.fixture
def system(config, notifier):
    """Provide a file-backed MemorySystem in a temp directory."""
    mem = MemorySystem(config=config, notifier=notifier)
    yield mem
    mem.close()
