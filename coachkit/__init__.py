"""CoachKit plan engine: deterministic plan generation and safety-gated adaptation."""

import coachkit.core.logger  # noqa: F401  (configures loguru on import)

__version__ = "1.0.0"
