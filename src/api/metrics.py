from prometheus_client import Counter, Histogram, Gauge, REGISTRY


# we check if they are already registered to avoid errors during hot reloads or test runs
def get_or_create_metric(name, documentation, metric_type, **kwargs):
    try:
        return metric_type(name, documentation, **kwargs)
    except ValueError:
        # Counters register under the base name; look both up.
        collectors = REGISTRY._names_to_collectors
        return collectors.get(name) or collectors[f"{name}_total"]


COMMANDS_TOTAL = get_or_create_metric(
    "tasktalk_commands_total",
    "Commands handled, by intent and outcome",
    Counter,
    labelnames=["intent", "status"],
)

COMMAND_LATENCY_SECONDS = get_or_create_metric(
    "tasktalk_command_latency_seconds",
    "Command handling latency",
    Histogram,
    labelnames=["intent"],
)

TASKS_CREATED_TOTAL = get_or_create_metric(
    "tasktalk_tasks_created_total", "Tasks added to the list", Counter
)

LOCK_REJECTIONS_TOTAL = get_or_create_metric(
    "tasktalk_lock_rejections_total", "Mutations refused because the task lock was held", Counter
)

TASK_LIST_SIZE = get_or_create_metric(
    "tasktalk_task_list_size", "Tasks currently held in memory", Gauge
)


def record_result(result, elapsed_s: float) -> None:
    """Best-effort metric updates for one CommandResult."""
    intent = result.intent or "unknown"
    status = "ok" if result.success else (result.reason or "failed")
    COMMANDS_TOTAL.labels(intent=intent, status=status).inc()
    COMMAND_LATENCY_SECONDS.labels(intent=intent).observe(elapsed_s)
    if result.success and result.created:
        TASKS_CREATED_TOTAL.inc(len(result.created))
    if result.reason == "locked":
        LOCK_REJECTIONS_TOTAL.inc()
