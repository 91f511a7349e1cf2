# tests/conftest.py

import pytest

from fakes import FlakyStore, FrozenClock
from taskclock.repository.archive import EntryArchive
from taskclock.service.timer import TimerService
from taskclock.storage.bounded import BoundedStore


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture()
def raw_store() -> FlakyStore:
    """
    Every test gets the flaky store; with empty fail sets it behaves like
    a plain MemoryStore.
    """
    return FlakyStore()


@pytest.fixture()
def store(raw_store: FlakyStore) -> BoundedStore:
    return BoundedStore(raw_store)


@pytest.fixture()
def archive(store: BoundedStore) -> EntryArchive:
    return EntryArchive(store)


@pytest.fixture()
def service(archive: EntryArchive, clock: FrozenClock) -> TimerService:
    return TimerService(archive, clock=clock)
