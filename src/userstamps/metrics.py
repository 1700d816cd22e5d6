from opentelemetry import metrics

meter = metrics.get_meter("userstamps")

# Safe even without a configured MeterProvider
stamps_written_total = meter.create_counter(
    "userstamps_stamps_written_total",
    description="Number of user stamps written, by action (create/update/delete/soft_delete)",
)
