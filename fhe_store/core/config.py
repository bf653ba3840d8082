"""
Core configuration settings for the Encrypted Value Store
"""
import os
from typing import List, Optional
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Application settings"""

    # Database Configuration
    DATABASE_URL: Optional[str] = None
    POSTGRES_USER: str = os.getenv("POSTGRES_USER", "app_user")
    POSTGRES_PASSWORD: str = os.getenv("POSTGRES_PASSWORD", "password")
    POSTGRES_HOST: str = os.getenv("POSTGRES_HOST", "postgres")
    POSTGRES_PORT: str = os.getenv("POSTGRES_PORT", "5432")
    POSTGRES_DB: str = os.getenv("POSTGRES_DB", "fhe_poc")

    # Key material
    FHE_KEY_FILE: str = "config/fhe-params.json"
    FHE_KEY_PASSPHRASE: Optional[str] = None

    # Scheme parameters (only used when no key file exists yet)
    FHE_POLY_MODULUS_DEGREE: int = 4096
    FHE_COEFF_MOD_BIT_SIZES: List[int] = [36, 36, 37]
    FHE_PLAIN_MODULUS_BITS: int = 20
    FHE_SECURITY_LEVEL: int = 128

    # Search
    SEARCH_TIMEOUT_SECONDS: float = 30.0

    # Server Configuration
    PORT: int = 3000
    HOST: str = "0.0.0.0"

    # Application Settings
    APP_NAME: str = "Encrypted Value Store"
    APP_DESCRIPTION: str = "Stores homomorphically encrypted integers and searches them by equality"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Per-request Python heap delta in the request log (tracemalloc)
    TRACK_REQUEST_MEMORY: bool = True

    @property
    def database_url(self) -> str:
        """Construct database URL"""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    def scheme_parameters(self):
        """Build the scheme parameters used for first-time key generation"""
        from ..services.homomorphic_encryption import SchemeParameters

        return SchemeParameters.with_batching(
            poly_modulus_degree=self.FHE_POLY_MODULUS_DEGREE,
            coeff_mod_bit_sizes=tuple(self.FHE_COEFF_MOD_BIT_SIZES),
            plain_modulus_bits=self.FHE_PLAIN_MODULUS_BITS,
            security_level=self.FHE_SECURITY_LEVEL,
        )

    class Config:
        env_file = ".env"
        extra = "ignore"


# Global settings instance
settings = Settings()
