# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Hold lifecycle: creation, cancellation, expiry and completion."""

from .manager import Authorizer, ReservationManager

__all__ = ["Authorizer", "ReservationManager"]
