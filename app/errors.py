"""
Error Types
Failures raised by collaborators and request validation
"""


class ChatbotError(Exception):
    """Base class for chatbot errors"""
    pass


class ProviderError(ChatbotError):
    """LLM, embedding or vector search call failed or timed out"""
    pass


class StorageError(ChatbotError):
    """Voice session persistence failed"""
    pass


class ValidationError(ChatbotError):
    """Request is missing a required field; surfaced to the caller as HTTP 400"""

    def __init__(self, message: str, field: str = None):
        super().__init__(message)
        self.message = message
        self.field = field
