"""Request and response models for the public API."""
