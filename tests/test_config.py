from pydantic import SecretStr, ValidationError
import pytest

from dicetel_core.models.config import DicetelConfig, DicetelTelemetryConfig


class TestTelemetryConfig:
    def test_sensitive_field_hidden_when_dumping_config(self):
        """Test that api_key is masked and never dumped."""
        config = DicetelTelemetryConfig(api_key='test')
        json_output = config.model_dump_json()
        dictionary_output = config.model_dump()

        assert '**********' == str(config.api_key)
        assert isinstance(config.api_key, SecretStr)
        assert '"api_key"' not in json_output
        assert 'api_key' not in dictionary_output

    def test_signal_endpoints_derive_from_base_endpoint(self):
        config = DicetelTelemetryConfig(endpoint='http://collector:4318/')

        assert config.traces_endpoint == 'http://collector:4318/v1/traces'
        assert config.metrics_endpoint == 'http://collector:4318/v1/metrics'
        assert config.logs_endpoint == 'http://collector:4318/v1/logs'

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv('OTEL_SERVICE_NAME', raising=False)
        monkeypatch.delenv('OTEL_EXPORTER_OTLP_ENDPOINT', raising=False)
        config = DicetelTelemetryConfig()

        assert config.endpoint == 'http://localhost:4317'
        assert config.protocol == 'grpc'
        assert config.service_name == 'dicetel'
        assert config.overflow_policy == 'drop_newest'

    def test_reads_prefixed_environment(self, monkeypatch):
        monkeypatch.setenv('DICETEL_TELEMETRY_PROTOCOL', 'http/protobuf')
        monkeypatch.setenv('DICETEL_TELEMETRY_MAX_QUEUE_SIZE', '16')

        config = DicetelTelemetryConfig()

        assert config.protocol == 'http/protobuf'
        assert config.max_queue_size == 16

    def test_reads_standard_otel_variables(self, monkeypatch):
        monkeypatch.setenv('OTEL_SERVICE_NAME', 'dice-server')
        monkeypatch.setenv('OTEL_EXPORTER_OTLP_ENDPOINT', 'http://otel:4317')

        config = DicetelTelemetryConfig()

        assert config.service_name == 'dice-server'
        assert config.endpoint == 'http://otel:4317'

    @pytest.mark.parametrize(
        'field, value',
        [
            ('overflow_policy', 'drop_everything'),
            ('max_queue_size', 0),
            ('shutdown_timeout_millis', -1),
        ],
    )
    def test_invalid_values_are_rejected(self, field, value):
        with pytest.raises(ValidationError):
            DicetelTelemetryConfig(**{field: value})


class TestDicetelConfig:
    def test_nested_telemetry_config(self, monkeypatch):
        monkeypatch.setenv('DICETEL_TELEMETRY_ENABLE', 'false')
        monkeypatch.setenv('DICETEL_PORT', '9090')

        config = DicetelConfig()

        assert config.port == 9090
        assert config.telemetry.enable is False

    def test_negative_work_delay_is_rejected(self):
        with pytest.raises(ValidationError):
            DicetelConfig(work_delay_millis=-1)
