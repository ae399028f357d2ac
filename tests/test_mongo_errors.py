"""MongoDB error mapping; no server needed."""

import pytest
from pymongo.errors import DuplicateKeyError, OperationFailure, ServerSelectionTimeoutError, WriteError

from common_rest.core.errors import InvalidDocument, StorageUnavailable
from common_rest.core.storage.mongo import _guard


@pytest.mark.parametrize(
    "exc",
    [
        WriteError("Performing an update on the path '_id' would modify the immutable field '_id'", 66),
        OperationFailure("unknown operator: $bogus", 2),
        DuplicateKeyError("E11000 duplicate key error", 11000),
    ],
)
def test_rejected_writes_are_client_errors(exc):
    with pytest.raises(InvalidDocument):
        with _guard("update hero"):
            raise exc


def test_connection_failures_are_storage_unavailable():
    with pytest.raises(StorageUnavailable):
        with _guard("find in hero"):
            raise ServerSelectionTimeoutError("localhost:27017: connection refused")


def test_counter_failures_stay_storage_errors():
    with pytest.raises(StorageUnavailable):
        with _guard("increment hero_id", client_errors=False):
            raise OperationFailure("command increment requires authentication", 13)
