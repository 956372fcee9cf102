"""
Exception hierarchy for the chat workbench.

Busy errors are raised before any state changes. Configuration errors are
raised after the pending message has been closed as an error. Completion errors end up as the terminal status of a message and
are never raised out of send/regenerate.
"""


class WorkbenchError(Exception):
    """Base class for every error raised by the workbench."""


class ConfigurationError(WorkbenchError):
    """The selected preset cannot be used to issue a request."""


class PresetNotSelectedError(ConfigurationError):
    def __init__(self) -> None:
        super().__init__("Select a preset with an API key before sending a message.")


class MissingApiKeyError(ConfigurationError):
    def __init__(self) -> None:
        super().__init__("Add an OpenRouter API key to the selected preset before sending a message.")


class RequestInFlightError(WorkbenchError):
    """A completion request is already outstanding."""

    def __init__(self, message_id: str):
        self.message_id = message_id
        super().__init__(f"A request is already in progress for message {message_id}.")


class InvalidParameterValue(WorkbenchError):
    """A request parameter value is not a JSON literal."""


class CompletionError(WorkbenchError):
    """Base class for failures talking to the completion endpoint."""


class CompletionHTTPError(CompletionError):
    """The endpoint answered with a non-success status."""

    def __init__(self, message: str, status_code: int):
        self.status_code = status_code
        super().__init__(message)


class CompletionTransportError(CompletionError):
    """The request never produced a response (DNS, connection, TLS, ...)."""


class CompletionResponseError(CompletionError):
    """The endpoint answered but the body did not have the expected shape."""
