# src/agentstate/exceptions.py
"""
Custom exceptions for the agentstate library.

This module defines a hierarchy of custom exception classes so that callers
can tell configuration problems, storage failures, corrupted on-disk state
and embedding failures apart, and handle each in a targeted way.
"""


class AgentStateError(Exception):
    """Base class for all agentstate specific errors."""
    def __init__(self, message: str = "An unspecified error occurred in agentstate."):
        super().__init__(message)


class ConfigError(AgentStateError):
    """Raised for errors related to configuration loading or validation."""
    def __init__(self, message: str = "Configuration error."):
        super().__init__(message)


class StorageError(AgentStateError):
    """Base class for errors related to storage operations."""
    def __init__(self, message: str = "Storage error."):
        super().__init__(message)


class SessionStorageError(StorageError):
    """Raised for errors specific to session storage operations."""
    def __init__(self, message: str = "Session storage error."):
        super().__init__(message)


class MessageStorageError(SessionStorageError):
    """Raised when a message log cannot be read from or appended to."""
    def __init__(self, message: str = "Message storage error."):
        super().__init__(message)


class MemoryStorageError(StorageError):
    """Raised for errors specific to agent memory storage operations."""
    def __init__(self, message: str = "Memory storage error."):
        super().__init__(message)


class CorruptedStoreError(StorageError):
    """
    Raised when persisted state cannot be parsed back.

    Corruption is never repaired silently; the path of the offending file is
    kept so an operator can inspect it.
    """
    def __init__(self, path: str = "Unknown", message: str = "Stored data is corrupted."):
        self.path = path
        super().__init__(f"{message} Path: '{path}'")


class SessionNotFoundError(StorageError):
    """
    Raised when a specified session ID is not found in storage.
    Inherits from StorageError as it's a storage-related lookup failure.
    """
    def __init__(self, session_id: str, message: str = "Session not found."):
        self.session_id = session_id
        super().__init__(f"{message} Session ID: '{session_id}'")


class EmbeddingError(AgentStateError):
    """Raised for errors related to embedding generation."""
    def __init__(self, model_name: str = "Unknown", message: str = "Embedding generation error."):
        self.model_name = model_name
        super().__init__(f"Error with embedding model '{model_name}': {message}")


class InvalidPointerError(ValueError):
    """Raised when a pagination cursor cannot be decoded."""
    def __init__(self, pointer: str = "", message: str = "Invalid pagination pointer."):
        self.pointer = pointer
        super().__init__(f"{message} Pointer: '{pointer}'")
