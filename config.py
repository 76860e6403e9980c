import os


APP_TITLE = "PDF Question Answering"

# Models
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "jina-embeddings-v3")
EMBEDDING_DIMENSIONS = int(os.getenv("EMBEDDING_DIMENSIONS", "1024"))
EMBEDDING_URL = os.getenv("EMBEDDING_URL", "https://api.jina.ai/v1/embeddings")
LLM_MODEL = os.getenv("LLM_MODEL", "llama-3.3-70b-versatile")
RERANK_MODEL = os.getenv("RERANK_MODEL", "llama-3.1-8b-instant")

# Chunking (estimated tokens, ~3 chars per token)
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", "800"))
CHUNK_OVERLAP = int(os.getenv("CHUNK_OVERLAP", "200"))

# Retrieval defaults
TOP_K_RETRIEVE = int(os.getenv("TOP_K_RETRIEVE", "10"))
SIMILARITY_THRESHOLD = float(os.getenv("SIMILARITY_THRESHOLD", "0.7"))
MAX_CONTEXT_TOKENS = int(os.getenv("MAX_CONTEXT_TOKENS", "12000"))

# Embedding requests
EMBED_BATCH_SIZE = int(os.getenv("EMBED_BATCH_SIZE", "5"))
EMBED_BATCH_DELAY = float(os.getenv("EMBED_BATCH_DELAY", "0.2"))
MAX_RETRIES = int(os.getenv("MAX_RETRIES", "3"))
RETRY_BASE_DELAY = float(os.getenv("RETRY_BASE_DELAY", "1.0"))
RETRY_JITTER = float(os.getenv("RETRY_JITTER", "0.25"))

# Generation
TEMPERATURE = float(os.getenv("TEMPERATURE", "0.2"))
MAX_TOKENS = int(os.getenv("MAX_TOKENS", "4000"))

# Caches
EMBEDDING_CACHE_SIZE = int(os.getenv("EMBEDDING_CACHE_SIZE", "1000"))
RESPONSE_CACHE_SIZE = int(os.getenv("RESPONSE_CACHE_SIZE", "100"))
RESPONSE_CACHE_TTL = float(os.getenv("RESPONSE_CACHE_TTL", "3600"))

# Extraction
PAGES_PER_BATCH = int(os.getenv("PAGES_PER_BATCH", "3"))
OCR_FALLBACK = os.getenv("OCR_FALLBACK", "1") not in ("0", "false", "False")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Persistence
INDEX_STORE_DIR = os.getenv("INDEX_STORE_DIR", ".rag_store")
