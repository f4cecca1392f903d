import pytest

from portal.errors import (
    APIError,
    AuthenticationError,
    AuthorizationError,
    NetworkError,
    RateLimited,
    ServerError,
    ValidationError,
    describe_error,
    error_for_status,
)


@pytest.mark.parametrize(
    ("status_code", "expected"),
    [
        (401, AuthenticationError),
        (429, RateLimited),
        (500, ServerError),
        (503, ServerError),
        (404, APIError),
        (409, APIError),
    ],
)
def test_error_for_status_picks_specific_class(status_code, expected):
    error = error_for_status(status_code, "nope")

    assert type(error) is expected
    assert error.status_code == status_code
    assert str(error) == f"[{status_code}] nope"


def test_describe_error_messages():
    assert describe_error(NetworkError("refused")) == "Unable to reach the server."
    assert "sign in" in describe_error(AuthenticationError("x", status_code=401))
    assert "permission" in describe_error(APIError("x", status_code=403))
    assert describe_error(ServerError("x", status_code=502)) == "Server error. Please try again later."
    assert describe_error(APIError("Title is required", status_code=400)) == "Title is required"
    assert describe_error(ValidationError("A rejection reason is required")) == "A rejection reason is required"
    assert describe_error(AuthorizationError("Not yours")) == "Not yours"
