from unittest.mock import patch

from shared.config import Settings
from shared.logging import setup_logging
from shared.metrics import setup_metrics
from shared.tracing import setup_tracing


def test_setup_logging():
    """Test that setup_logging configures OTel provider."""
    with patch("shared.logging.set_logger_provider") as mock_set_provider, \
         patch("shared.logging.LoggerProvider") as mock_provider_cls, \
         patch("shared.logging.BatchLogRecordProcessor"), \
         patch("shared.logging.ConsoleLogRecordExporter"), \
         patch("shared.logging.LoggingHandler"), \
         patch("shared.logging.logging.getLogger"):

        setup_logging()

        mock_provider_cls.assert_called_once()
        mock_set_provider.assert_called_once()


def test_setup_metrics():
    """Test that setup_metrics configures OTel meter provider."""
    with patch("shared.metrics.MeterProvider") as mock_provider_cls, \
         patch("shared.metrics.metrics.set_meter_provider") as mock_set_provider, \
         patch("shared.metrics.PrometheusMetricReader"), \
         patch("shared.metrics.PeriodicExportingMetricReader"), \
         patch("shared.metrics.ConsoleMetricExporter"):

        setup_metrics("test-app")

        mock_provider_cls.assert_called_once()
        mock_set_provider.assert_called_once()


def test_setup_tracing():
    """Test that setup_tracing configures OTel tracer provider."""
    with patch("shared.tracing.TracerProvider") as mock_provider_cls, \
         patch("shared.tracing.trace.set_tracer_provider") as mock_set_provider, \
         patch("shared.tracing.BatchSpanProcessor"), \
         patch("shared.tracing.ConsoleSpanExporter"):

        setup_tracing("test-app")

        mock_provider_cls.assert_called_once()
        mock_set_provider.assert_called_once()


def test_settings_defaults(monkeypatch):
    """Defaults select the in-process backend and the sandbox profile."""
    for name in ("EGS_SIGNING_BACKEND", "EGS_ENVIRONMENT", "EGS_STAGING_DIR"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.EGS_SIGNING_BACKEND == "native"
    assert settings.EGS_ENVIRONMENT == "sandbox"
    assert settings.EGS_STAGING_DIR is None
    assert settings.OPENSSL_TIMEOUT_SECONDS > 0


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("EGS_SIGNING_BACKEND", "openssl")
    monkeypatch.setenv("OPENSSL_TIMEOUT_SECONDS", "5")

    settings = Settings(_env_file=None)

    assert settings.EGS_SIGNING_BACKEND == "openssl"
    assert settings.OPENSSL_TIMEOUT_SECONDS == 5.0
