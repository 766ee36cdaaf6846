"""Provider registry and dependency injection container for FileLens.

Every component is built explicitly from a FileLensConfig and owned by one
registry instance; nothing is stored in module-level globals, so tests and
embedders can run several independent registries side by side.
"""

from typing import Any, Callable, Dict, Optional

from loguru import logger

from filelens.chunker import Chunker
from filelens.core.config import FileLensConfig
from filelens.extractor import ContentExtractor
from filelens.metrics import MetricsRecorder
from interfaces.database_provider import VectorStoreProvider
from interfaces.embedding_provider import EmbeddingModel, EmbeddingProvider
from providers.database.duckdb_store import DuckDBVectorStore
from providers.embeddings.local_engine import LocalEmbeddingEngine
from providers.embeddings.model import SentenceTransformerModel
from providers.embeddings.worker_pool import EmbeddingWorkerPool
from providers.llm.ollama_client import OllamaClient
from services.indexing_service import IndexingService
from services.retrieval_service import RetrievalService


class ProviderRegistry:
    """Registry for building and owning provider and service instances."""

    def __init__(
        self,
        config: FileLensConfig,
        model_factory: Optional[Callable[[], EmbeddingModel]] = None,
    ):
        """Initialize the registry.

        Args:
            config: Application configuration
            model_factory: Override how the embedding model is created
                (defaults to a SentenceTransformerModel from config)
        """
        self._config = config
        self._model_factory = model_factory or self._default_model_factory
        self._overrides: Dict[str, Any] = {}
        self._singletons: Dict[str, Any] = {}

    @classmethod
    def from_config(cls, config: Optional[FileLensConfig] = None, **kwargs: Any) -> "ProviderRegistry":
        return cls(config or FileLensConfig.load_hierarchical(), **kwargs)

    @property
    def config(self) -> FileLensConfig:
        return self._config

    def register_provider(self, name: str, instance: Any) -> None:
        """Use ``instance`` for ``name`` instead of building one from config."""
        self._overrides[name] = instance
        self._singletons.pop(name, None)
        logger.debug(f"Registered {type(instance).__name__} as {name}")

    def _get(self, name: str, factory: Callable[[], Any]) -> Any:
        if name in self._overrides:
            return self._overrides[name]
        if name not in self._singletons:
            self._singletons[name] = factory()
        return self._singletons[name]

    def _default_model_factory(self) -> EmbeddingModel:
        embedding = self._config.embedding
        return SentenceTransformerModel(embedding.model, embedding.dimensions, embedding.device)

    def get_metrics(self) -> MetricsRecorder:
        return self._get("metrics", MetricsRecorder)

    def get_embedding_provider(self) -> EmbeddingProvider:
        return self._get("embedding", self._create_embedding_provider)

    def _create_embedding_provider(self) -> EmbeddingProvider:
        embedding = self._config.embedding
        if embedding.mode == "local":
            logger.info("Using in-process embedding engine")
            return LocalEmbeddingEngine(
                model_factory=self._model_factory,
                dimensions=embedding.dimensions,
                batch_size=embedding.local_batch_size,
                progress_interval=embedding.progress_interval,
                metrics=self.get_metrics(),
            )
        return EmbeddingWorkerPool(
            model_factory=self._model_factory,
            dimensions=embedding.dimensions,
            model_name=embedding.model,
            progress_interval=embedding.progress_interval,
            yield_every=embedding.yield_every,
            shutdown_timeout=embedding.shutdown_timeout,
            metrics=self.get_metrics(),
        )

    def get_vector_store(self) -> VectorStoreProvider:
        return self._get("vector_store", lambda: DuckDBVectorStore(
            dimensions=self._config.embedding.dimensions,
            hnsw_index=self._config.database.hnsw_index,
            metrics=self.get_metrics(),
        ))

    def get_extractor(self) -> ContentExtractor:
        indexing = self._config.indexing
        return self._get("extractor", lambda: ContentExtractor(
            max_file_size=indexing.max_file_size,
            max_characters=indexing.max_characters,
            max_pdf_pages=indexing.max_pdf_pages,
            metrics=self.get_metrics(),
        ))

    def get_chunker(self) -> Chunker:
        indexing = self._config.indexing
        return self._get("chunker", lambda: Chunker(
            chunk_size=indexing.chunk_size,
            overlap_ratio=indexing.chunk_overlap,
            chars_per_token=indexing.chars_per_token,
        ))

    def get_llm_client(self) -> OllamaClient:
        llm = self._config.llm
        return self._get("llm", lambda: OllamaClient(
            base_url=llm.base_url,
            model=llm.model,
            temperature=llm.temperature,
            max_tokens=llm.max_tokens,
            timeout=llm.timeout,
            probe_timeout=llm.probe_timeout,
            metrics=self.get_metrics(),
        ))

    def create_indexing_service(self) -> IndexingService:
        return self._get("indexing_service", lambda: IndexingService(
            vector_store=self.get_vector_store(),
            embedding_provider=self.get_embedding_provider(),
            extractor=self.get_extractor(),
            chunker=self.get_chunker(),
            concurrency=self._config.indexing.concurrency,
            metrics=self.get_metrics(),
        ))

    def create_retrieval_service(self) -> RetrievalService:
        retrieval = self._config.retrieval
        return self._get("retrieval_service", lambda: RetrievalService(
            vector_store=self.get_vector_store(),
            embedding_provider=self.get_embedding_provider(),
            top_k=retrieval.top_k,
            max_context_tokens=retrieval.max_context_tokens,
            metrics=self.get_metrics(),
        ))

    async def open(self) -> None:
        """Open the vector store at the configured location."""
        await self.get_vector_store().initialize(self._config.database.path)
        logger.info("Provider registry ready")

    async def close(self) -> None:
        """Shut down the embedding worker and close the vector store."""
        embedding = self._singletons.get("embedding") or self._overrides.get("embedding")
        if embedding is not None:
            await embedding.shutdown()
        store = self._singletons.get("vector_store") or self._overrides.get("vector_store")
        if store is not None:
            await store.close()
        logger.info("Provider registry closed")


def create_registry(config: Optional[FileLensConfig] = None, **kwargs: Any) -> ProviderRegistry:
    """Build a registry from configuration (hierarchically loaded if omitted)."""
    return ProviderRegistry.from_config(config, **kwargs)


__all__ = [
    "ProviderRegistry",
    "create_registry",
]
