from pydantic_settings import BaseSettings


class Settings(BaseSettings):

    # Providers
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o"

    ollama_base_url: str = "http://localhost:11434/v1"
    ollama_model: str = "qwen2.5:7b"

    default_provider: str = "openai"

    # Sampling
    llm_temperature: float = 0.7
    llm_top_p: float = 0.8
    llm_top_k: int = 40
    llm_max_tokens: int = 2048

    # Empty string disables vector mode (lexical scoring only)
    embedding_model: str = ""
    embedding_batch_size: int = 32

    chroma_host: str = "localhost"
    chroma_port: int = 8001
    chroma_collection: str = "repochat_documents"
    chroma_space: str = "l2"

    cache_dir: str = "./.repochat/corpus"

    # Indexing
    token_model: str = "gpt-4o"
    max_file_tokens: int = 8192
    excluded_dirs: list[str] = [
        ".venv", "venv", "node_modules", ".git", "__pycache__",
        ".pytest_cache", "dist", "build", "docs", ".idea", ".vscode",
    ]
    excluded_files: list[str] = [
        "package-lock.json", "yarn.lock", "poetry.lock", "Pipfile.lock",
        ".DS_Store", "Thumbs.db", ".env", ".gitignore",
    ]

    # Retrieval
    rag_top_k: int = 20
    title_weight: float = 2.0
    phrase_text_bonus: float = 5.0
    phrase_title_bonus: float = 10.0
    importance_high: float = 1.5
    importance_medium: float = 1.2

    # Conversation memory
    memory_window: int = 3
    memory_relevance_threshold: float = 0.3

    request_timeout: float = 60.0

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
