"""
Tests for the error taxonomy.
"""

import pytest

from shared.errors import (
    ErrorKind,
    Forbidden,
    NetworkError,
    NotFound,
    RemoteLoadError,
    RequestTimeout,
    ServerError,
    Unauthorized,
    ValidationFailed,
    describe_error,
    error_from_status,
    is_retryable,
)


class TestErrorFromStatus:
    """Tests for HTTP status classification."""

    @pytest.mark.parametrize("status,expected", [
        (400, ValidationFailed),
        (401, Unauthorized),
        (403, Forbidden),
        (404, NotFound),
        (408, RequestTimeout),
        (409, ValidationFailed),
        (422, ValidationFailed),
        (429, ServerError),
        (500, ServerError),
        (503, ServerError),
    ])
    def test_status_mapping(self, status, expected):
        error = error_from_status(status)

        assert type(error) is expected
        assert error.status == status

    def test_default_messages(self):
        assert error_from_status(401).message == "You need to log in to access this resource."
        assert error_from_status(418).message == "An error occurred. Please try again."

    def test_message_from_body(self):
        assert error_from_status(500, {"message": "Database offline"}).message == "Database offline"

    def test_validation_errors_list(self):
        error = error_from_status(422, {"errors": [{"message": "quantity too large"}, "sku missing"]})

        assert error.message == "quantity too large, sku missing"
        assert error.detail == [{"message": "quantity too large"}, "sku missing"]

    def test_validation_errors_by_field(self):
        error = error_from_status(400, {"errors": {"email": ["invalid"], "name": "required"}})

        assert error.message == "invalid, required"

    def test_str_includes_kind_and_status(self):
        assert str(NotFound("gone", 404)) == "not_found (404): gone"
        assert str(NetworkError("offline")) == "network: offline"


class TestRetryable:
    @pytest.mark.parametrize("error", [
        ServerError("x", 500), RequestTimeout("x"), NetworkError("x"), RuntimeError("unclassified"),
    ])
    def test_transient(self, error):
        assert is_retryable(error) is True

    @pytest.mark.parametrize("error", [
        Unauthorized("x", 401), Forbidden("x", 403), NotFound("x", 404), ValidationFailed("x", 422),
    ])
    def test_permanent(self, error):
        assert is_retryable(error) is False


def test_describe_error():
    assert describe_error(NotFound("Product not found", 404)) == "Product not found"
    assert describe_error(RuntimeError("boom")) == "boom"
    assert describe_error(RuntimeError()) == "An unexpected error occurred"


def test_error_kinds():
    assert Unauthorized("x").kind == ErrorKind.UNAUTHORIZED
    assert RequestTimeout("x").kind == ErrorKind.TIMEOUT


def test_remote_load_error():
    error = RemoteLoadError("cart", "cart_badge", "unknown remote")

    assert error.reason == "unknown remote"
    assert str(error) == "cart/cart_badge: unknown remote"
