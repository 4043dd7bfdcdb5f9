"""Swap Alert Pipeline - Admission pipeline for on-chain swap alerts."""

__version__ = "0.1.0"
