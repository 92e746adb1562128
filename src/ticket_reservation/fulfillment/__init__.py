# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Sale finalization: payment policy and post-commit orchestration."""

from .orchestrator import FulfillmentOrchestrator
from .payment import DefaultPaymentProofPolicy, PaymentProofPolicy

__all__ = [
    "DefaultPaymentProofPolicy",
    "FulfillmentOrchestrator",
    "PaymentProofPolicy",
]
