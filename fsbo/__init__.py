"""FSBO lead finder: GHL OAuth token lifecycle and lead export pipeline."""

__version__ = "0.1.0"
