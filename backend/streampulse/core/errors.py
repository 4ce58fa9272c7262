"""
StreamPulse - Error Types
"""


class StreamPulseError(Exception):
    """Base class for all StreamPulse errors"""


class TransportError(StreamPulseError):
    """The metrics backend or history store is unreachable or rejected the call"""

    def __init__(self, message: str, operation: str = ""):
        super().__init__(message)
        self.message = message
        self.operation = operation

    def __str__(self):
        if self.operation:
            return f"{self.operation}: {self.message}"
        return self.message


class SessionNotFound(StreamPulseError):
    """No recorded session with the given id"""

    def __init__(self, session_id: str):
        super().__init__(f"Session '{session_id}' not found")
        self.session_id = session_id
