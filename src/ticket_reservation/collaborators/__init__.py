# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""In-process reference implementations of the collaborator protocols."""

from .memory import (
    InMemorySupplyLedger,
    InMemoryTicketSink,
    LocalTokenIssuer,
    TicketRecordVerifier,
)

__all__ = [
    "InMemorySupplyLedger",
    "InMemoryTicketSink",
    "LocalTokenIssuer",
    "TicketRecordVerifier",
]
