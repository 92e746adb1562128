# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Payment proof policies.

A policy decides whether the proof attached to a finalize call is
acceptable. Acceptance is the commit point of a sale.

Warning:
    DefaultPaymentProofPolicy only checks the *shape* of a proof. It does
    not verify a signature or look a transaction up anywhere. Deployments
    that take real payments must plug in a policy backed by their payment
    rail.
"""

import re
from typing import Protocol, runtime_checkable

TRANSACTION_REF_PATTERN = re.compile(r"0x[0-9a-fA-F]{64}")
"""A 32-byte transaction reference in 0x-prefixed hex."""

MIN_OPAQUE_PROOF_LENGTH = 20
"""Opaque proofs must be strictly longer than this."""


@runtime_checkable
class PaymentProofPolicy(Protocol):
    """Decides whether a payment proof is acceptable for a hold."""

    def accepts(self, proof: str) -> bool:
        """Return True if ``proof`` is acceptable."""
        ...


class DefaultPaymentProofPolicy:
    """
    Shape-only placeholder policy.

    Accepts a proof that looks like a 32-byte hex transaction reference, or
    any opaque token longer than 20 characters. Everything else, including
    non-string values, is rejected.
    """

    def accepts(self, proof: str) -> bool:
        if not isinstance(proof, str):
            return False
        if TRANSACTION_REF_PATTERN.fullmatch(proof):
            return True
        return len(proof) > MIN_OPAQUE_PROOF_LENGTH


__all__ = [
    "MIN_OPAQUE_PROOF_LENGTH",
    "TRANSACTION_REF_PATTERN",
    "DefaultPaymentProofPolicy",
    "PaymentProofPolicy",
]
