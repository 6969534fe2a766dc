"""Custom assertions for testing tool responses."""

from typing import Any


def assert_success_response(response: dict[str, Any]) -> None:
    """Assert that a response follows the success format.

    Example:
        >>> result = await tools.read_file(str(path))
        >>> assert_success_response(result)
    """
    assert isinstance(response, dict), f"Response must be dict, got {type(response)}"
    assert "success" in response, "Response missing 'success' field"
    assert response["success"] is True, f"Expected success=True, got {response}"
    assert "result" in response, "Success response missing 'result' field"
    assert "message" in response, "Success response missing 'message' field"


def assert_error_response(response: dict[str, Any], error_code: str | None = None) -> None:
    """Assert that a response follows the error format.

    Args:
        response: The response dictionary to validate
        error_code: Optional specific error code to check for

    Example:
        >>> result = await tools.read_file("/etc/passwd")
        >>> assert_error_response(result, "ACCESS_DENIED")
    """
    assert isinstance(response, dict), f"Response must be dict, got {type(response)}"
    assert "success" in response, "Response missing 'success' field"
    assert response["success"] is False, f"Expected success=False, got {response}"
    assert "error" in response, "Error response missing 'error' field"
    assert "message" in response, "Error response missing 'message' field"

    if error_code is not None:
        actual_code = response.get("error")
        assert (
            actual_code == error_code
        ), f"Expected error code '{error_code}', got '{actual_code}': {response['message']}"
