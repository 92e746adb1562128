# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Check-in ledger for issued tokens."""

from .ledger import CheckInLedger, check_in_reference

__all__ = ["CheckInLedger", "check_in_reference"]
