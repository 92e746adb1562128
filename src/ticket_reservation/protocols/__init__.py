# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Protocol definitions for the engine's external collaborators.

The core engine never talks to a ledger, token issuer, persistence layer
or verifier directly; it depends only on these protocols.
"""

from .issuance import TokenIssuerProtocol
from .ledger import SupplyLedgerProtocol
from .persistence import PersistenceSinkProtocol
from .verification import TokenVerifierProtocol

__all__ = [
    "PersistenceSinkProtocol",
    "SupplyLedgerProtocol",
    "TokenIssuerProtocol",
    "TokenVerifierProtocol",
]
