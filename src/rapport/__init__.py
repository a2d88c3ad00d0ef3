"""rapport: streaming persona chat with encrypted conversation memory."""

__version__ = "0.1.0"
