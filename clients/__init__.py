# Storage clients
from clients.record_store import (
    RecordStore,
    Table,
    InMemoryRecordStore,
    JsonFileRecordStore,
    open_record_store,
)
