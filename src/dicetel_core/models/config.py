from typing import Literal, Optional

import logging

from pydantic_settings import BaseSettings, SettingsConfigDict

from pydantic import AliasChoices, Field, SecretStr


class BaseConfig(BaseSettings):
    """Base class for configuration values."""

    pass


class DicetelTelemetryConfig(BaseConfig):
    """Configuration values for the telemetry pipeline. All env variables must start with dicetel_telemetry_"""

    enable: bool = True
    """Enable exporting telemetry to the collector. Default True."""

    endpoint: str = Field(
        default='http://localhost:4317',
        validation_alias=AliasChoices(
            'dicetel_telemetry_endpoint', 'otel_exporter_otlp_endpoint'
        ),
    )
    """The base url of the Open Telemetry collector endpoint. Also read from OTEL_EXPORTER_OTLP_ENDPOINT."""

    protocol: Literal['grpc', 'http/protobuf'] = 'grpc'
    """The transport used to reach the collector. Default 'grpc'."""

    traces_endpoint: str = Field(
        default_factory=lambda data: f'{data["endpoint"].rstrip("/")}/v1/traces'
    )
    """The endpoint for the traces exporter when using http/protobuf."""

    metrics_endpoint: str = Field(
        default_factory=lambda data: f'{data["endpoint"].rstrip("/")}/v1/metrics'
    )
    """The endpoint for the metrics exporter when using http/protobuf."""

    logs_endpoint: str = Field(
        default_factory=lambda data: f'{data["endpoint"].rstrip("/")}/v1/logs'
    )
    """The endpoint for the logs exporter when using http/protobuf."""

    api_key: Optional[SecretStr] = Field(exclude=True, default=None)
    """The authentication key sent with every export."""

    authentication_header: str = 'Authorization'
    """The header in which the api key needs to be included for authentication purposes."""

    service_name: str = Field(
        default='dicetel',
        validation_alias=AliasChoices(
            'dicetel_telemetry_service_name', 'otel_service_name'
        ),
    )
    """The service.name resource attribute. Also read from OTEL_SERVICE_NAME."""

    metrics_export_interval_millis: int = Field(default=10000, gt=0)
    """The interval between two metric exports. Default 10 seconds."""

    spans_max_export_batch_size: int = Field(default=64, gt=0)
    """The maximum number of spans sent in one batch."""

    spans_schedule_delay_millis: int = Field(default=200, gt=0)
    """The delay between two span flushes when the batch is not full."""

    logs_max_export_batch_size: int = Field(default=512, gt=0)
    """The maximum number of log records sent in one batch."""

    logs_schedule_delay_millis: int = Field(default=1000, gt=0)
    """The delay between two log flushes when the batch is not full."""

    max_queue_size: int = Field(default=2048, gt=0)
    """The capacity of each span and log export queue."""

    overflow_policy: Literal['drop_newest', 'drop_oldest'] = 'drop_newest'
    """What happens to a record when its export queue is full. Default 'drop_newest'."""

    export_timeout_millis: int = Field(default=10000, gt=0)
    """The client timeout when sending one batch. Default 10 seconds."""

    shutdown_timeout_millis: int = Field(default=5000, gt=0)
    """The time allowed to flush everything on shutdown. Default 5 seconds."""

    use_compression: bool = True
    """The client should compress telemetry before send. Default True."""

    verbose: bool = True
    """Log when batches are sent. Default True."""

    model_config = SettingsConfigDict(
        env_prefix='dicetel_telemetry_',
        env_file='.env',
        extra='ignore',
        populate_by_name=True,
    )


class DicetelConfig(BaseConfig):
    """Configuration values for the dice service. All env variables must start with dicetel_"""

    logging_level: Optional[int] = logging.INFO
    """The logging level. Default "logging.INFO"."""

    logging_file: Optional[str] = None
    """The log file path. Specify to save logs to file. Default "None"."""

    host: str = '0.0.0.0'
    """The interface the HTTP server binds to."""

    port: int = 8080
    """The port the HTTP server listens on."""

    work_delay_millis: int = Field(default=100, ge=0)
    """How long the simulated work inside the child span lasts. Default 100ms."""

    theme: Optional[Literal['light', 'dark']] = None
    """The console theme to use. Set to 'light' for light terminals or 'dark' for dark terminals. Default None (auto-detect)."""

    telemetry: DicetelTelemetryConfig = Field(default_factory=DicetelTelemetryConfig)
    """Telemetry configuration"""

    model_config = SettingsConfigDict(
        env_prefix='dicetel_',
        env_file='.env',
        extra='ignore',
        nested_model_default_partial_update=True,
    )
