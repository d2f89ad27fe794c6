"""CLI package for model-failover.

Re-exports for tests and the pyproject.toml entry point.
"""

from model_failover.cli.config import (  # noqa: F401
    CONFIG_FILE,
    ENV_FILE,
    _load_config,
    _save_config,
)
from model_failover.cli.formatting import (  # noqa: F401
    format_duration,
    format_events,
    format_metrics,
    format_model_history,
    format_status,
)
from model_failover.cli.main import cli  # noqa: F401
