from unittest.mock import AsyncMock

import pytest

from ticket_reservation.collaborators.memory import (
    InMemorySupplyLedger,
    InMemoryTicketSink,
    LocalTokenIssuer,
    TicketRecordVerifier,
)
from ticket_reservation.protocols import (
    PersistenceSinkProtocol,
    SupplyLedgerProtocol,
    TokenIssuerProtocol,
    TokenVerifierProtocol,
)
from ticket_reservation.types.sale import IssuanceRequest


class TestProtocols:
    def test_in_memory_collaborators_satisfy_protocols(self):
        sink = InMemoryTicketSink()
        assert isinstance(InMemorySupplyLedger(), SupplyLedgerProtocol)
        assert isinstance(LocalTokenIssuer(), TokenIssuerProtocol)
        assert isinstance(sink, PersistenceSinkProtocol)
        assert isinstance(TicketRecordVerifier(sink), TokenVerifierProtocol)

    def test_missing_method_fails_check(self):
        class NotALedger:
            async def get_supply(self, event_id, ticket_type_id):
                return None

        assert not isinstance(NotALedger(), SupplyLedgerProtocol)

    def test_mock_with_method_satisfies_protocol(self):
        issuer = AsyncMock(spec=["issue_tokens"])
        assert isinstance(issuer, TokenIssuerProtocol)


class TestInMemoryCollaborators:
    @pytest.mark.asyncio
    async def test_ledger_refuses_oversell(self):
        ledger = InMemorySupplyLedger()
        await ledger.set_supply("e", "t", total_supply=3, unit_price="1.00")
        await ledger.increment_sold("e", "t", 3)
        with pytest.raises(ValueError):
            await ledger.increment_sold("e", "t", 1)
        assert (await ledger.get_supply("e", "t")).sold_count == 3

    @pytest.mark.asyncio
    async def test_ledger_unknown_type(self):
        ledger = InMemorySupplyLedger()
        assert await ledger.get_supply("e", "t") is None
        with pytest.raises(KeyError):
            await ledger.increment_sold("e", "t", 1)

    @pytest.mark.asyncio
    async def test_issuer_mints_requested_quantity(self):
        issuer = LocalTokenIssuer(start=100)
        request = IssuanceRequest(
            order_id="o", event_id="e", ticket_type_id="t", quantity=3, owner_address="0x"
        )
        result = await issuer.issue_tokens(request)
        assert result.token_ids == ("100", "101", "102")
        assert result.transaction_ref.startswith("0x")
        assert len(result.transaction_ref) == 66
        assert issuer.issued == [request]

    @pytest.mark.asyncio
    async def test_verifier_unknown_token(self):
        verification = await TicketRecordVerifier(InMemoryTicketSink()).verify("x")
        assert not verification.valid
        assert verification.detail == "Ticket not found"
