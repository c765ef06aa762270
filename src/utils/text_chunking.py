"""
Text chunking for chat messages.

The chat platform rejects messages over 2000 characters. Long listings are
split on line boundaries into chunks that stay under a safety margin.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional


MESSAGE_LIMIT = 2000


@dataclass
class TextChunk:
    """Represents a chunk of text with its position in the sequence."""
    content: str
    chunk_index: int
    line_count: int


@dataclass
class ChunkingConfig:
    """Configuration for message chunking."""
    max_chunk_size: int = 1900  # Leaves room for a code fence around the chunk
    wrap_in_code_block: bool = False


class TextChunker:
    """Splits lines into message-sized chunks."""

    def __init__(self, config: Optional[ChunkingConfig] = None):
        self.config = config or ChunkingConfig()
        if self.config.max_chunk_size <= 0:
            raise ValueError("max_chunk_size must be positive")

    def chunk_lines(self, lines: Iterable[str]) -> List[TextChunk]:
        """
        Greedily pack lines into chunks. A single line longer than the limit is
        split at the limit.
        """
        limit = self.config.max_chunk_size
        chunks: List[TextChunk] = []
        current: List[str] = []
        size = 0

        def flush():
            nonlocal current, size
            if current:
                chunks.append(TextChunk(content="\n".join(current), chunk_index=len(chunks), line_count=len(current)))
            current, size = [], 0

        for line in lines:
            while len(line) > limit:
                flush()
                chunks.append(TextChunk(content=line[:limit], chunk_index=len(chunks), line_count=1))
                line = line[limit:]

            added = len(line) + (1 if current else 0)
            if size + added > limit:
                flush()
                added = len(line)
            current.append(line)
            size += added

        flush()
        return chunks

    def chunk_text(self, text: str) -> List[TextChunk]:
        return self.chunk_lines(text.splitlines())

    def messages(self, lines: Iterable[str]) -> List[str]:
        """Chunk contents ready to send."""
        contents = [c.content for c in self.chunk_lines(lines)]
        if self.config.wrap_in_code_block:
            contents = [f"```\n{c}\n```" for c in contents]
        return contents


def chunk_message_lines(lines: Iterable[str], max_chunk_size: int = 1900, code_block: bool = False) -> List[str]:
    """Convenience wrapper returning message strings."""
    return TextChunker(ChunkingConfig(max_chunk_size=max_chunk_size, wrap_in_code_block=code_block)).messages(lines)
