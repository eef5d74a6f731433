"""Speak2Chat - live speech transcription saved as chats."""

__version__ = "0.1.0"
