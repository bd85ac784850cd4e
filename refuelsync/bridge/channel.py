"""
In-process method channel.

A named channel delivers one method call at a time to a single handler
and hands back a result envelope: success, error, or not implemented.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from .errors import BridgeError, MethodNotImplementedError

logger = logging.getLogger(__name__)


class ResultStatus(Enum):
    """Outcome of a method call."""
    SUCCESS = "success"
    ERROR = "error"
    NOT_IMPLEMENTED = "not_implemented"


@dataclass(frozen=True)
class MethodCall:
    """
    A method invocation arriving on a channel.
    
    Attributes:
        method: Method name (e.g., "saveEntries")
        arguments: Arbitrary payload, usually a dict or None
    """
    method: str
    arguments: Any = None


@dataclass(frozen=True)
class MethodResult:
    """
    Result envelope returned to the caller.
    
    Exactly one shape applies per status:
    - SUCCESS: value
    - ERROR: code, message, details
    - NOT_IMPLEMENTED: nothing
    """
    status: ResultStatus
    value: Any = None
    code: Optional[str] = None
    message: Optional[str] = None
    details: Any = None
    
    @classmethod
    def success(cls, value: Any = None) -> "MethodResult":
        return cls(status=ResultStatus.SUCCESS, value=value)
    
    @classmethod
    def error(cls, code: str, message: Optional[str] = None, details: Any = None) -> "MethodResult":
        return cls(status=ResultStatus.ERROR, code=code, message=message, details=details)
    
    @classmethod
    def not_implemented(cls) -> "MethodResult":
        return cls(status=ResultStatus.NOT_IMPLEMENTED)
    
    @classmethod
    def from_error(cls, error: BridgeError) -> "MethodResult":
        if isinstance(error, MethodNotImplementedError):
            return cls.not_implemented()
        return cls.error(error.code, error.message, error.details)
    
    @property
    def is_success(self) -> bool:
        return self.status == ResultStatus.SUCCESS
    
    def to_dict(self) -> dict:
        """Render the wire envelope."""
        if self.status == ResultStatus.SUCCESS:
            return {"result": self.value}
        if self.status == ResultStatus.NOT_IMPLEMENTED:
            return {
                "error": {
                    "code": MethodNotImplementedError.code,
                    "message": "Method not implemented",
                    "details": None,
                }
            }
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


MethodCallHandler = Callable[[MethodCall], MethodResult]


class MethodChannel:
    """
    Named channel with a single method call handler.
    
    Usage:
        channel = MethodChannel("icloud_sync")
        channel.set_method_call_handler(bridge.handle)
        result = channel.invoke_method("loadEntries")
    """
    
    def __init__(self, name: str):
        self.name = name
        self._handler: Optional[MethodCallHandler] = None
    
    def __repr__(self) -> str:
        return f"MethodChannel(name='{self.name}')"
    
    def set_method_call_handler(self, handler: Optional[MethodCallHandler]) -> None:
        """Install the handler, or remove it by passing None."""
        self._handler = handler
        logger.debug(f"Handler {'set' if handler else 'cleared'} on channel {self.name}")
    
    def invoke_method(self, method: str, arguments: Any = None) -> MethodResult:
        """
        Deliver a method call to the handler.
        
        Args:
            method: Method name
            arguments: Method payload
            
        Returns:
            The handler's result. BridgeErrors raised by the handler are
            converted to error results; other exceptions propagate.
        """
        if self._handler is None:
            logger.warning(f"No handler on channel {self.name} for {method}")
            return MethodResult.not_implemented()
        
        call = MethodCall(method=method, arguments=arguments)
        try:
            return self._handler(call)
        except BridgeError as e:
            logger.info(f"{self.name}.{method} failed: {e.code}")
            return MethodResult.from_error(e)
