"""
Optimizer Configuration

Manages loading from environment variables and default values.
"""

import os
from dataclasses import dataclass, field, asdict

from field_prompt_tuner.domain.constants import (
    DEFAULT_JUDGE_MODEL,
    DEFAULT_PROMPT_MODEL,
    DEFAULT_TEST_MODEL,
)


def _env_bool(key: str, default: bool) -> bool:
    """Convert an environment variable to bool"""
    val = os.environ.get(key)
    if val is None:
        return default
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int) -> int:
    """Convert an environment variable to int"""
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return int(val)
    except ValueError:
        raise ValueError(f"The value '{val}' of environment variable '{key}' cannot be converted to an integer.")


def _env_float(key: str, default: float) -> float:
    """Convert an environment variable to float"""
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return float(val)
    except ValueError:
        raise ValueError(f"The value '{val}' of environment variable '{key}' cannot be converted to a number.")


def _env_str(key: str, default: str) -> str:
    """Get an environment variable as a string"""
    return os.environ.get(key, default)


@dataclass
class SamplingConfig:
    """Document sampling configuration"""
    max_docs: int = 5
    holdout_ratio: float = 0.2

    def __post_init__(self):
        if self.max_docs < 1:
            raise ValueError(f"max_docs must be at least 1 (got {self.max_docs}).")
        if not 0.0 <= self.holdout_ratio < 1.0:
            raise ValueError(f"holdout_ratio must be in [0, 1) (got {self.holdout_ratio}).")


@dataclass
class IterationConfig:
    """Per-field iteration configuration"""
    max_iterations: int = 5
    target_accuracy: float = 1.0
    holdout_threshold: float = 0.8
    max_repair_attempts: int = 2
    analysis_iteration_cutoff: int = 2
    enable_failure_analysis: bool = True
    # Downgrade llm-judge to near-exact comparison while optimizing
    deterministic_compare: bool = False
    custom_instructions: str = ""
    company_name: str = ""

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be at least 1 (got {self.max_iterations}).")
        if self.max_repair_attempts < 0:
            raise ValueError(f"max_repair_attempts must be non-negative (got {self.max_repair_attempts}).")


@dataclass
class ConcurrencyConfig:
    """Concurrency limits"""
    field_concurrency: int = 2
    extraction_concurrency: int = 5
    analysis_concurrency: int = 2

    def __post_init__(self):
        for name in ("field_concurrency", "extraction_concurrency", "analysis_concurrency"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1 (got {getattr(self, name)}).")


@dataclass
class ModelsConfig:
    """Model names used for extraction, prompt generation and judging"""
    test_model: str = DEFAULT_TEST_MODEL
    prompt_model: str = DEFAULT_PROMPT_MODEL
    judge_model: str = DEFAULT_JUDGE_MODEL


@dataclass
class IsolationConfig:
    """Provider call limits"""
    timeout_seconds: int = 30
    max_retries: int = 3
    retry_delay_seconds: float = 1.0


@dataclass
class LMStudioConfig:
    """LMStudio (OpenAI-compatible local LLM) configuration"""
    base_url: str = "http://localhost:1234/v1"
    api_key: str = "lm-studio"


@dataclass
class LoggingConfig:
    """Logging configuration"""
    level: str = "INFO"
    debug: bool = False

    @property
    def effective_level(self) -> str:
        return "DEBUG" if self.debug else self.level.upper()


@dataclass
class OptimizerConfig:
    """Overall optimizer configuration"""
    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    iteration: IterationConfig = field(default_factory=IterationConfig)
    concurrency: ConcurrencyConfig = field(default_factory=ConcurrencyConfig)
    models: ModelsConfig = field(default_factory=ModelsConfig)
    isolation: IsolationConfig = field(default_factory=IsolationConfig)
    lmstudio: LMStudioConfig = field(default_factory=LMStudioConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> dict:
        """Convert to dictionary format"""
        return {"optimizer_config": asdict(self)}

    @classmethod
    def from_dict(cls, data: dict) -> "OptimizerConfig":
        """Create from dictionary (handles presence/absence of optimizer_config key)"""
        config_data = data.get("optimizer_config", data)
        return cls(
            sampling=SamplingConfig(**config_data.get("sampling", {})),
            iteration=IterationConfig(**config_data.get("iteration", {})),
            concurrency=ConcurrencyConfig(**config_data.get("concurrency", {})),
            models=ModelsConfig(**config_data.get("models", {})),
            isolation=IsolationConfig(**config_data.get("isolation", {})),
            lmstudio=LMStudioConfig(**config_data.get("lmstudio", {})),
            logging=LoggingConfig(**config_data.get("logging", {})),
        )


def load_config() -> OptimizerConfig:
    """
    Load configuration from environment variables

    Uses default values when environment variables are not set.

    Returns:
        OptimizerConfig

    Raises:
        ValueError: If a variable cannot be converted or a value is out of range
    """
    sampling = SamplingConfig(
        max_docs=_env_int("OPTIMIZER_MAX_DOCS", 5),
        holdout_ratio=_env_float("OPTIMIZER_HOLDOUT_RATIO", 0.2),
    )
    iteration = IterationConfig(
        max_iterations=_env_int("OPTIMIZER_MAX_ITERATIONS", 5),
        target_accuracy=_env_float("OPTIMIZER_TARGET_ACCURACY", 1.0),
        holdout_threshold=_env_float("OPTIMIZER_HOLDOUT_THRESHOLD", 0.8),
        max_repair_attempts=_env_int("OPTIMIZER_MAX_REPAIR_ATTEMPTS", 2),
        analysis_iteration_cutoff=_env_int("OPTIMIZER_ANALYSIS_ITERATION_CUTOFF", 2),
        enable_failure_analysis=_env_bool("OPTIMIZER_FAILURE_ANALYSIS", True),
        deterministic_compare=_env_bool("OPTIMIZER_DETERMINISTIC_COMPARE", False),
        custom_instructions=_env_str("OPTIMIZER_CUSTOM_INSTRUCTIONS", ""),
        company_name=_env_str("OPTIMIZER_COMPANY_NAME", ""),
    )
    concurrency = ConcurrencyConfig(
        field_concurrency=_env_int("OPTIMIZER_FIELD_CONCURRENCY", 2),
        extraction_concurrency=_env_int("OPTIMIZER_EXTRACTION_CONCURRENCY", 5),
        analysis_concurrency=_env_int("OPTIMIZER_ANALYSIS_CONCURRENCY", 2),
    )
    models = ModelsConfig(
        test_model=_env_str("OPTIMIZER_TEST_MODEL", DEFAULT_TEST_MODEL),
        prompt_model=_env_str("OPTIMIZER_PROMPT_MODEL", DEFAULT_PROMPT_MODEL),
        judge_model=_env_str("OPTIMIZER_JUDGE_MODEL", DEFAULT_JUDGE_MODEL),
    )
    isolation = IsolationConfig(
        timeout_seconds=_env_int("OPTIMIZER_TIMEOUT_SECONDS", 30),
        max_retries=_env_int("OPTIMIZER_MAX_RETRIES", 3),
        retry_delay_seconds=_env_float("OPTIMIZER_RETRY_DELAY_SECONDS", 1.0),
    )
    lmstudio = LMStudioConfig(
        base_url=_env_str("LMSTUDIO_BASE_URL", "http://localhost:1234/v1"),
        api_key=_env_str("LMSTUDIO_API_KEY", "lm-studio"),
    )
    logging_config = LoggingConfig(
        level=_env_str("OPTIMIZER_LOG_LEVEL", "INFO"),
        debug=_env_bool("OPTIMIZER_DEBUG", False),
    )
    return OptimizerConfig(
        sampling=sampling,
        iteration=iteration,
        concurrency=concurrency,
        models=models,
        isolation=isolation,
        lmstudio=lmstudio,
        logging=logging_config,
    )
