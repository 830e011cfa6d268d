import pytest

from record_store import RecordStore
from settings import StoreConfig


@pytest.fixture
def store(tmp_path):
    return RecordStore(StoreConfig(root=tmp_path))


@pytest.fixture
def five_records(store):
    text = "".join(f"{i}-)TEXT STRING{i}\n" for i in range(1, 6))
    assert store.write("test1", text).ok
    return store
