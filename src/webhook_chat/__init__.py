"""Chat with HTTP webhook endpoints and keep the transcripts."""

__version__ = "0.1.0"
