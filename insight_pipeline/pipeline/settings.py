"""Pipeline configuration. Env prefix: PIPELINE_."""
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PipelineSettings(BaseSettings):
    """Settings for the bulk extraction run."""

    model_config = SettingsConfigDict(
        env_prefix="PIPELINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    concurrency: int = Field(default=5, ge=1, description="Max simultaneous in-flight LLM requests")
    model: str | None = Field(default=None, description="Extraction model (default: LLM_DEFAULT_MODEL)")
    schema_name: str = Field(default="review_insight", description="Output schema for each record")
    id_field: str | None = Field(default=None, description="Key holding the task id in success records (default: per input kind)")
    data_dir: str = Field(default="data", description="Where cleaned input files are looked up")
    input_prefix: str | None = Field(default=None, description="Input file name prefix, <prefix>_YYYYMMDD.jsonl (default: per input kind)")
    output_dir: str = Field(default="insights", description="Directory for the success stream")
    output_prefix: str | None = Field(default=None, description="Success stream name prefix (default: per input kind)")
    errors_path: str = Field(default="logs/extraction_errors.jsonl", description="Failure stream")
    system_prompt_path: str | None = Field(default=None, description="System prompt file (default: per input kind)")
