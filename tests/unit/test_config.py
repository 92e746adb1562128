"""Unit tests for EngineConfig."""

from datetime import timedelta

import pytest

from ticket_reservation.config import HOLD_DURATION_SECONDS, MAX_QUANTITY, EngineConfig
from ticket_reservation.exceptions import ConfigurationError


class TestEngineConfig:
    def test_defaults(self):
        config = EngineConfig()
        assert config.hold_duration_seconds == HOLD_DURATION_SECONDS == 900
        assert config.hold_duration == timedelta(minutes=15)
        assert config.max_quantity == MAX_QUANTITY == 5
        assert config.sweep_interval == 30.0
        assert config.placeholder_token_prefix == "PLACEHOLDER-NFT-"
        assert config.default_page_size == 10
        assert config.namespace == "tickets"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"hold_duration_seconds": 0},
            {"max_quantity": 0},
            {"sweep_interval": -1},
            {"timer_history_size": 0},
            {"availability_cache_ttl": 0},
            {"availability_cache_max_size": 0},
            {"default_page_size": 0},
            {"default_page_size": 50, "max_page_size": 10},
            {"namespace": ""},
        ],
    )
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ConfigurationError):
            EngineConfig(**kwargs)

    def test_custom_hold_duration(self):
        config = EngineConfig(hold_duration_seconds=60)
        assert config.hold_duration == timedelta(seconds=60)
