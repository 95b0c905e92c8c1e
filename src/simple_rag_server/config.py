from typing import List, Literal, Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

PROVIDER_ORDER = ("google", "openai", "anthropic", "cohere")


class Settings(BaseSettings):
    app_name: str = "simple-rag-server"
    log_level: str = "INFO"

    # Generation providers (probed in PROVIDER_ORDER)
    google_api_key: Optional[SecretStr] = None
    google_model: str = "gemini-2.0-flash"
    openai_api_key: Optional[SecretStr] = None
    openai_model: str = "gpt-4o"
    anthropic_api_key: Optional[SecretStr] = None
    anthropic_model: str = "claude-3-5-haiku-20241022"
    cohere_api_key: Optional[SecretStr] = None
    cohere_model: str = "command-r-plus-08-2024"

    # Embeddings
    embedding_provider: Literal["google", "openai"] = "google"
    embedding_model: str = "text-embedding-004"
    embedding_dimension: int = Field(default=768, ge=1)
    embedding_max_chars: int = 10000
    embedding_batch_size: int = Field(default=5, ge=1)

    # Vector store
    vector_backend: Literal["faiss", "pgvector"] = "faiss"
    vector_collection: str = "documents"
    vector_index_path: Optional[str] = "data/faiss_index.bin"
    vector_meta_path: Optional[str] = "data/index_meta.json"
    database_url: Optional[str] = None
    upsert_batch_size: int = Field(default=100, ge=1)

    # Documents
    chunk_size: int = 1000
    chunk_overlap: int = 200
    max_file_size: int = 100 * 1024 * 1024

    # Retrieval and prompting
    retrieval_limit: int = 5
    retrieval_threshold: float = 0.7
    max_context_chars: int = 8000
    history_context_messages: int = 6
    max_message_length: int = 4000
    response_language: str = "English"
    generation_max_tokens: int = 1000
    generation_temperature: float = 0.7

    # Sessions
    session_ttl_seconds: int = Field(default=3600, ge=60)
    session_cleanup_interval_seconds: int = Field(default=300, ge=1)
    session_history_limit: int = Field(default=10, ge=1)

    # Timeouts (seconds)
    generation_timeout: float = 180.0
    embedding_timeout: float = 60.0
    health_check_timeout: float = 30.0

    admin_api_key: Optional[SecretStr] = None
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"
    )

    def provider_api_key(self, provider: str) -> Optional[str]:
        secret = getattr(self, f"{provider}_api_key", None)
        if secret is None:
            return None
        return secret.get_secret_value() or None

    def configured_providers(self) -> List[str]:
        """Providers with a credential, in probe order."""
        return [p for p in PROVIDER_ORDER if self.provider_api_key(p)]

    @property
    def embedding_api_key(self) -> Optional[str]:
        return self.provider_api_key(self.embedding_provider)

    @property
    def cors_origin_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings()
