"""
Utility modules for the agency builder.
"""

from .text_chunking import (
    MESSAGE_LIMIT,
    TextChunk,
    ChunkingConfig,
    TextChunker,
    chunk_message_lines,
)

__all__ = [
    'MESSAGE_LIMIT',
    'TextChunk',
    'ChunkingConfig',
    'TextChunker',
    'chunk_message_lines',
]
