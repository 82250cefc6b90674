"""docent retrieval and answer generation: vector index, retriever, assembler, chat."""

from docent.rag.assembler import NO_CONTEXT, assemble
from docent.rag.chat import ChatReply, ChatService
from docent.rag.generator import ResponseGenerator
from docent.rag.history import ConversationHistoryManager
from docent.rag.index import LinearScanIndex, ScoredChunk, SqliteVecIndex, VectorIndex, build_index
from docent.rag.llm_client import EmbeddingClient
from docent.rag.retriever import Retriever, RetrieverConfig

__all__ = [
    "NO_CONTEXT",
    "assemble",
    "ChatReply",
    "ChatService",
    "ResponseGenerator",
    "ConversationHistoryManager",
    "LinearScanIndex",
    "ScoredChunk",
    "SqliteVecIndex",
    "VectorIndex",
    "build_index",
    "EmbeddingClient",
    "Retriever",
    "RetrieverConfig",
]
