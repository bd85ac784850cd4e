"""Errors surfaced to method channel callers."""

from typing import Any, Optional


class BridgeError(Exception):
    """
    Error returned to the caller of a channel method.
    
    Attributes:
        code: Machine-readable error code
        message: Human-readable description
        details: Optional extra payload for the caller
    """
    
    code = "BRIDGE_ERROR"
    
    def __init__(self, message: str, code: Optional[str] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details


class InvalidArgumentsError(BridgeError):
    """Raised when a method receives arguments that are not a string-keyed mapping."""
    
    code = "BAD_ARGS"
    
    def __init__(self, message: str = "Arguments expected", details: Any = None):
        super().__init__(message, details=details)


class MethodNotImplementedError(BridgeError):
    """Raised when the channel has no method with the requested name."""
    
    code = "NOT_IMPLEMENTED"
    
    def __init__(self, method: str):
        super().__init__(f"Method not implemented: {method}")
        self.method = method
