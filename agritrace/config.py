"""
Runtime settings for the traceability engine.

Settings come from environment variables (optionally loaded from a
.env file with python-dotenv) and are validated with pydantic.
"""
import os
from pathlib import Path

from pydantic import BaseModel, Field, field_validator


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str) -> list[str]:
    value = os.getenv(name, "")
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseModel):
    """
    Engine configuration.

    Attributes:
        ledger_gateway_url: Base URL of the ledger REST gateway
        ledger_channel: Channel the chaincode is deployed on
        ledger_chaincode: Chaincode name
        content_store_url: IPFS RPC API address
        submit_timeout: Seconds before a submit is declared ambiguous
        evaluate_timeout: Seconds before an evaluate attempt times out
        content_timeout: Seconds before a content store call times out
        read_max_attempts: Attempts for side-effect-free calls
        read_backoff_base: First retry delay in seconds (doubles per attempt)
        read_backoff_max: Upper bound of a retry delay
        history_base_url: Public address used in traceability references
        verify_content: Read back stored content before referencing it
        validation_rules_path: Optional YAML file with extra validation rules
        extra_step_types: Step types accepted in addition to the built-in vocabulary
        max_document_bytes: Size limit for certificate documents
        log_level: Logging level
        log_format: "json" or "text"
        metrics_port: Port for the Prometheus endpoint (disabled when None)
    """

    ledger_gateway_url: str = "http://localhost:8080"
    ledger_channel: str = "agri-channel"
    ledger_chaincode: str = "agri-chaincode"
    content_store_url: str = "http://localhost:5001"
    submit_timeout: float = Field(30.0, gt=0)
    evaluate_timeout: float = Field(10.0, gt=0)
    content_timeout: float = Field(30.0, gt=0)
    read_max_attempts: int = Field(3, ge=1)
    read_backoff_base: float = Field(0.2, ge=0)
    read_backoff_max: float = Field(2.0, ge=0)
    history_base_url: str = "http://localhost:3000"
    verify_content: bool = True
    validation_rules_path: str | None = None
    extra_step_types: list[str] = Field(default_factory=list)
    max_document_bytes: int = Field(10 * 1024 * 1024, gt=0)
    log_level: str = "INFO"
    log_format: str = "json"
    metrics_port: int | None = None

    @field_validator("log_format")
    @classmethod
    def check_log_format(cls, v: str) -> str:
        if v not in ("json", "text"):
            raise ValueError("log_format must be 'json' or 'text'")
        return v

    @field_validator("extra_step_types")
    @classmethod
    def normalize_step_types(cls, v: list[str]) -> list[str]:
        return [item.strip().upper() for item in v if item.strip()]

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            env_file: Optional .env file loaded first (existing variables win)

        Returns:
            Validated Settings
        """
        if env_file is not None:
            from dotenv import load_dotenv

            load_dotenv(env_file, override=False)

        defaults = cls()
        metrics_port = os.getenv("METRICS_PORT")
        return cls(
            ledger_gateway_url=os.getenv("LEDGER_GATEWAY_URL", defaults.ledger_gateway_url),
            ledger_channel=os.getenv("LEDGER_CHANNEL", defaults.ledger_channel),
            ledger_chaincode=os.getenv("LEDGER_CHAINCODE", defaults.ledger_chaincode),
            content_store_url=os.getenv("CONTENT_STORE_URL", defaults.content_store_url),
            submit_timeout=float(os.getenv("SUBMIT_TIMEOUT", defaults.submit_timeout)),
            evaluate_timeout=float(os.getenv("EVALUATE_TIMEOUT", defaults.evaluate_timeout)),
            content_timeout=float(os.getenv("CONTENT_TIMEOUT", defaults.content_timeout)),
            read_max_attempts=int(os.getenv("READ_MAX_ATTEMPTS", defaults.read_max_attempts)),
            read_backoff_base=float(os.getenv("READ_BACKOFF_BASE", defaults.read_backoff_base)),
            read_backoff_max=float(os.getenv("READ_BACKOFF_MAX", defaults.read_backoff_max)),
            history_base_url=os.getenv("HISTORY_BASE_URL", defaults.history_base_url),
            verify_content=_env_bool("VERIFY_CONTENT", defaults.verify_content),
            validation_rules_path=os.getenv("VALIDATION_RULES_PATH") or None,
            extra_step_types=_env_list("EXTRA_STEP_TYPES"),
            max_document_bytes=int(os.getenv("MAX_DOCUMENT_BYTES", defaults.max_document_bytes)),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level),
            log_format=os.getenv("LOG_FORMAT", defaults.log_format),
            metrics_port=int(metrics_port) if metrics_port else None,
        )
