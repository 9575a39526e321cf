"""
deepsearch/utils/exceptions.py

Custom exceptions for the project.
"""


class DeepSearchError(Exception):
    """
    Base class for all errors raised by deepsearch.
    The message is suitable for direct display to the user.
    """
    pass


class CaptureParseFailure(DeepSearchError):
    """
    Exception raised when an observed request body cannot become a template.
    Always dropped by the correlator; capture is best-effort.
    """
    pass


class MissingTemplateError(DeepSearchError):
    """
    Exception raised when a replay run needs a template that has not been captured yet.
    """

    def __init__(self, message: str, kind: str) -> None:
        super().__init__(message)
        self.kind = kind


class NoQueryAvailableError(DeepSearchError):
    """
    Exception raised when no search query can be resolved for a replay run.
    """
    pass


class MissingSearchDataError(DeepSearchError):
    """
    Exception raised when analysis or chat is requested before any search has completed.
    """
    pass


class RunInProgressError(DeepSearchError):
    """
    Exception raised when a run is started while another run of the same kind is active.
    """
    pass


class TransportError(DeepSearchError):
    """
    Exception raised when a single replayed request fails.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UpstreamQueryError(TransportError):
    """
    Exception raised when the upstream GraphQL endpoint answers with an `errors` array.
    """
    pass


class ItemFetchFailure(DeepSearchError):
    """
    Exception raised when one detail item cannot be turned into a thread.
    Recorded by the orchestrator; never aborts a run.
    """

    def __init__(self, message: str, item_id: str) -> None:
        super().__init__(message)
        self.item_id = item_id


class ProviderError(DeepSearchError):
    """
    Exception raised when an LLM backend call fails.
    """

    def __init__(self, message: str, backend: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.backend = backend
        self.status_code = status_code

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is not None:
            return f"{base} ({self.backend}, status {self.status_code})"
        return f"{base} ({self.backend})"


class ToolExecutionFailure(DeepSearchError):
    """
    Exception raised when a tool requested by the model cannot be executed.
    Fed back to the model as text instead of aborting the agent loop.
    """

    def __init__(self, message: str, tool_name: str) -> None:
        super().__init__(message)
        self.tool_name = tool_name
