"""DocIntel: document intelligence service with conversational question answering.

Submodules overview:
- main: FastAPI application, routes and error handlers.
- services: wiring of the pipeline components from settings.
- config: Application settings and environment variable loading.
- db / models / document_store: SQLAlchemy persistence of raw uploads and cleaned text.
- extractor: PDF / text / HTML page extraction with page markers.
- chunker: Paragraph-packing text splitter with a hard size ceiling.
- embedding: Local (sentence-transformers) or OpenAI embeddings, lazily loaded.
- vector_index: Qdrant collection of chunk vectors with docId payload filters.
- generation: OpenAI chat completions for answers and display names.
- sessions / conversation: Chat sessions, history windows and prompt building.
- query: The per-turn ask workflow.
- documents: Document listing, metadata, chunks, delete and download.
- ingestion: Upload orchestrator and the batch ingestion CLI.
- obs: Observability utilities (tracing spans).
"""
