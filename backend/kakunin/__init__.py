"""Kakunin - identity document intake, OCR field extraction and review backend."""

__version__ = "0.1.0"
