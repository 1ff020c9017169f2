from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings"""

    # API
    APP_NAME: str = "PharmAssist Clinical Query API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    WORKERS: int = 4

    # CORS
    CORS_ORIGINS: list[str] = [
        "http://localhost",
        "http://localhost:3000",
        "http://localhost:5173",
    ]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: list[str] = ["*"]
    CORS_ALLOW_HEADERS: list[str] = ["*"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Source labels shown to staff
    ASSISTANT_NAME: str = "PharmAssist"

    # LLM (groq | gemini | ollama | none)
    LLM_PROVIDER: str = "groq"
    GROQ_API_KEY: str = ""
    GROQ_MODEL: str = "llama-3.3-70b-versatile"
    GOOGLE_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.5-flash"
    OLLAMA_BASE_URL: str = ""
    OLLAMA_MODEL: str = "llama3:latest"
    LLM_TEMPERATURE: float = 0.1
    LLM_TIMEOUT: float = 15.0

    # Pipeline behaviour
    COMPOSER_MODE: str = "llm"  # llm | template
    INTENT_LLM_ENABLED: bool = True
    UNKNOWN_MEDICAL_TIER: str = "prescription"
    IDENTITY_ACCEPT_CONFIDENCE: float = 0.5
    IDENTITY_LOW_CONFIDENCE: float = 0.4

    # External providers
    OPENFDA_BASE_URL: str = "https://api.fda.gov"
    OPENFDA_TIMEOUT: float = 10.0
    RXNORM_BASE_URL: str = "https://rxnav.nlm.nih.gov/REST"
    RXNORM_TIMEOUT: float = 10.0
    MEDLINEPLUS_BASE_URL: str = "https://connect.medlineplus.gov"
    MEDLINEPLUS_TIMEOUT: float = 12.0
    MIMS_SEARCH_URL: str = "https://www.mims.com/philippines/search"
    TAVILY_API_KEY: str = ""
    ADVISORY_TIMEOUT: float = 15.0

    # Inventory (read-only)
    DATABASE_URL: str = ""

    # Provider cache
    REDIS_URL: str = ""
    OPENFDA_CACHE_TTL: int = 6 * 60 * 60
    RXNORM_CACHE_TTL: int = 24 * 60 * 60
    MEDLINEPLUS_CACHE_TTL: int = 12 * 60 * 60

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    @property
    def system_source(self) -> str:
        return f"{self.ASSISTANT_NAME} System"

    @property
    def inventory_source(self) -> str:
        return f"{self.ASSISTANT_NAME} Inventory"

    @property
    def clinical_source(self) -> str:
        return f"{self.ASSISTANT_NAME} Clinical Database"


settings = Settings()
