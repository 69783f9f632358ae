"""OpenTelemetry metrics for EGS unit provisioning."""

from opentelemetry import metrics

meter = metrics.get_meter("egs")

keys_generated_total = meter.create_counter(
    name="egs_keys_generated_total",
    description="Total secp256k1 private keys generated",
    unit="1",
)

csrs_generated_total = meter.create_counter(
    name="egs_csrs_generated_total",
    description="Total certificate signing requests generated",
    unit="1",
)

generation_failures_total = meter.create_counter(
    name="egs_generation_failures_total",
    description="Total failed key or CSR generations",
    unit="1",
)

provisioning_duration = meter.create_histogram(
    name="egs_provisioning_duration_seconds",
    description="Duration of a full key and CSR generation in seconds",
    unit="s",
)

staging_cleanup_failures_total = meter.create_counter(
    name="egs_staging_cleanup_failures_total",
    description="Total staged secret locations that could not be removed",
    unit="1",
)

certificates_installed_total = meter.create_counter(
    name="egs_certificates_installed_total",
    description="Total issued certificates installed on units",
    unit="1",
)


class EGSMetrics:
    """Facade for EGS metrics with proper labels."""

    def record_key_generated(self, backend: str) -> None:
        """Record key generation. Labels: backend=native|openssl"""
        keys_generated_total.add(1, {"backend": backend})

    def record_csr_generated(self, backend: str) -> None:
        """Record CSR generation. Labels: backend=native|openssl"""
        csrs_generated_total.add(1, {"backend": backend})

    def record_generation_failed(self, stage: str) -> None:
        """Record a failure. Labels: stage=key|csr"""
        generation_failures_total.add(1, {"stage": stage})

    def record_provisioned(self, duration_seconds: float) -> None:
        provisioning_duration.record(duration_seconds)

    def record_staging_cleanup_failed(self) -> None:
        staging_cleanup_failures_total.add(1)

    def record_certificate_installed(self) -> None:
        certificates_installed_total.add(1)


# Singleton instance
egs_metrics = EGSMetrics()
