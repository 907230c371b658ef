"""Circuit breaker settings."""

from pydantic import Field

from courier.configuration.base import InfrastructureSettings


class ResilienceSettings(InfrastructureSettings):
    """Per-channel circuit breaker configuration.

    Environment Variables:
        CIRCUIT_BREAKER_ENABLED: Wrap channel dispatch in a breaker (default: True)
        CIRCUIT_BREAKER_FAILURE_THRESHOLD: Failures within the window that open the circuit
        CIRCUIT_BREAKER_WINDOW_SECONDS: Sliding failure window (default: 60s)
        CIRCUIT_BREAKER_COOLDOWN_SECONDS: Time spent OPEN before a probe (default: 60s)
        CIRCUIT_BREAKER_COOLDOWN_MULTIPLIER: Cooldown growth after a failed probe
        CIRCUIT_BREAKER_MAX_COOLDOWN_SECONDS: Cap for cooldown growth
    """

    circuit_breaker_enabled: bool = Field(
        default=True, alias="CIRCUIT_BREAKER_ENABLED"
    )
    failure_threshold: int = Field(
        default=5, alias="CIRCUIT_BREAKER_FAILURE_THRESHOLD"
    )
    window_seconds: int = Field(default=60, alias="CIRCUIT_BREAKER_WINDOW_SECONDS")
    cooldown_seconds: int = Field(
        default=60, alias="CIRCUIT_BREAKER_COOLDOWN_SECONDS"
    )
    cooldown_multiplier: float = Field(
        default=1.0, alias="CIRCUIT_BREAKER_COOLDOWN_MULTIPLIER"
    )
    max_cooldown_seconds: int = Field(
        default=600, alias="CIRCUIT_BREAKER_MAX_COOLDOWN_SECONDS"
    )
