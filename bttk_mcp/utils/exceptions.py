"""
Custom exception classes for the MCP servers.
Provides specific error types for better error handling and user feedback.
"""

from typing import Optional, Dict, Any


class BttkMCPError(Exception):
    """Base exception for all bttk-mcp errors."""
    
    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize error.
        
        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


class ConfigurationError(BttkMCPError):
    """Raised when configuration is invalid or missing."""
    
    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs
    ):
        """
        Initialize configuration error.
        
        Args:
            message: Error message
            config_key: Name of missing/invalid config key
            **kwargs: Additional arguments for BttkMCPError
        """
        super().__init__(message, error_code="CONFIG_ERROR", **kwargs)
        self.config_key = config_key


class AuthenticationError(BttkMCPError):
    """Raised when authentication fails."""
    
    def __init__(
        self,
        message: str,
        auth_method: Optional[str] = None,
        **kwargs
    ):
        """
        Initialize authentication error.
        
        Args:
            message: Error message
            auth_method: Authentication method that failed (oauth, bearer)
            **kwargs: Additional arguments for BttkMCPError
        """
        super().__init__(message, error_code="AUTH_ERROR", **kwargs)
        self.auth_method = auth_method


class ObsidianAPIError(BttkMCPError):
    """Raised when the Obsidian Local REST API rejects a request."""
    
    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        api_error_code: Optional[int] = None,
        **kwargs
    ):
        """
        Initialize Obsidian API error.
        
        Args:
            message: Error message (the API's own message when it sent one)
            status_code: HTTP status code of the response
            api_error_code: ``errorCode`` field of the API error body
            **kwargs: Additional arguments for BttkMCPError
        """
        super().__init__(message, error_code="OBSIDIAN_API_ERROR", **kwargs)
        self.status_code = status_code
        self.api_error_code = api_error_code


class GoogleAPIError(BttkMCPError):
    """Raised when a Gmail or Calendar API call fails."""
    
    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        **kwargs
    ):
        super().__init__(message, error_code="GOOGLE_API_ERROR", **kwargs)
        self.status_code = status_code


class ValidationError(BttkMCPError):
    """Raised when tool input validation fails."""
    
    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs
    ):
        """
        Initialize validation error.
        
        Args:
            message: Error message
            field: Name of invalid field
            value: Invalid value
            **kwargs: Additional arguments for BttkMCPError
        """
        super().__init__(message, error_code="VALIDATION_ERROR", **kwargs)
        self.field = field
        self.value = value


class ToolExecutionError(BttkMCPError):
    """Raised when tool execution fails."""
    
    def __init__(
        self,
        message: str,
        tool_name: Optional[str] = None,
        **kwargs
    ):
        """
        Initialize tool execution error.
        
        Args:
            message: Error message
            tool_name: Name of tool that failed
            **kwargs: Additional arguments for BttkMCPError
        """
        super().__init__(message, error_code="TOOL_EXECUTION_ERROR", **kwargs)
        self.tool_name = tool_name
