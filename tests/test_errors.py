import pytest

from hezzlgoods.errors import (
    CacheMissError,
    GoodsNotFoundError,
    InternalServerError,
    ProjectNotFoundError,
    ServiceError,
    WorkerDoneError,
)


@pytest.mark.parametrize(
    ("error_class", "message"),
    [
        (ProjectNotFoundError, "project not found"),
        (GoodsNotFoundError, "goods not found"),
        (InternalServerError, "internal server error"),
        (CacheMissError, "cache miss"),
        (WorkerDoneError, "worker is done"),
    ],
)
def test_default_messages(error_class, message):
    error = error_class()
    assert str(error) == message
    assert isinstance(error, ServiceError)


def test_custom_message_replaces_default():
    error = GoodsNotFoundError("goods 7 is gone")
    assert str(error) == "goods 7 is gone"


def test_errors_are_distinct():
    error = GoodsNotFoundError()
    assert str(error) == "goods not found"
    assert not isinstance(error, ProjectNotFoundError)


def test_cache_miss_caught_as_service_error():
    error = CacheMissError()
    with pytest.raises(ServiceError) as info:
        raise error
    assert info.value is error
    assert str(info.value) == "cache miss"