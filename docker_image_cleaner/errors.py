"""Custom exceptions for the image cleaner."""


class CleanerError(Exception):
    """Base exception for all cleaner errors."""

    pass


class InventoryError(CleanerError):
    """Raised when the image or container inventory cannot be fetched."""

    pass


class ImageNotFound(CleanerError, KeyError):
    """Raised when an image id is not part of the current snapshot."""

    def __init__(self, image_id: str):
        super().__init__(image_id)
        self.image_id = image_id

    def __str__(self) -> str:
        return f"Image not found in snapshot: {self.image_id}"


class ConfigError(CleanerError):
    """Raised when a configuration value is invalid."""

    pass
