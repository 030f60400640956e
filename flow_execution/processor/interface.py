from abc import ABC, abstractmethod
from typing import Any, Dict


class ProcessorError(Exception):
    """Raised when the Step Processor cannot be reached or answers with an error."""
    pass


class StepProcessor(ABC):
    """
    Abstract Base Class interface that defines the contract for the backend
    Step Processor, the service that executes a flow's nodes and decides
    where execution pauses next.

    The processor is stateless per call: everything it needs to continue
    (existingContextData / pendingContextData) travels in the request.
    """

    @abstractmethod
    async def process(self, request: Dict[str, Any]) -> Any:
        """
        Sends one request (already in camelCase wire format) and returns the
        decoded JSON response body.
        """
        pass
