"""
Integration tests for the two-party negotiation flow.

WHAT: Buyer and seller screens negotiating over one shared backend
WHY: Validate that both parties converge on the same state through live echoes
HOW: Two view controllers, each with its own data service client, on the fake backend
"""

import asyncio

import pytest

from busqai.models.negotiation import NegotiationStatus
from busqai.negotiation.controller import NegotiationViewController
from busqai.negotiation.realtime import RealtimeSyncAdapter
from busqai.utils.exceptions import OfferNotAllowedError, SendError

from tests.fixtures.fake_data_service import wait_for

CHAT = "chat-1"


def screen(service, role, product=None):
    adapter = RealtimeSyncAdapter(service, max_reconnect_attempts=2, reconnect_delay=0.001)
    return NegotiationViewController(
        CHAT, role, service,
        product=product,
        adapter=adapter,
        max_rounds=5,
        typing_quiet_seconds=0.05,
        poll_interval=0.01,
    )


async def open_both(buyer_service, seller_service, product):
    buyer = screen(buyer_service, "buyer", product)
    seller = screen(seller_service, "seller", product)
    await buyer.open()
    await seller.open()
    await wait_for(lambda: buyer.view().live and seller.view().live)
    return buyer, seller


@pytest.mark.integration
@pytest.mark.negotiation
class TestNegotiationFlowIntegration:
    """Complete negotiation scenarios between two screens."""

    @pytest.mark.asyncio
    async def test_happy_path_offer_and_accept(self, backend, buyer_service, seller_service, product):
        buyer, seller = await open_both(buyer_service, seller_service, product)
        assert [q["amount"] for q in buyer.view().quick_offers] == [45.0, 40.0]

        offer = await buyer.send_offer(45)
        await wait_for(lambda: offer.id in seller.store)

        assert seller.view().acceptable_message_ids == [offer.id]
        assert buyer.view().acceptable_message_ids == []

        await seller.accept_offer(45)
        await wait_for(lambda: buyer.view().negotiation.status == NegotiationStatus.ACCEPTED)

        for view in (buyer.view(), seller.view()):
            assert view.negotiation.status == NegotiationStatus.ACCEPTED
            assert view.negotiation.final_price == 45
            assert view.negotiation.resolved_by == "seller-1"
            assert view.input_enabled is False
            assert view.can_offer is False
        assert backend.accepted[CHAT] == 45

        await buyer.close()
        await seller.close()

    @pytest.mark.asyncio
    async def test_counter_offers_advance_rounds(self, buyer_service, seller_service, product):
        buyer, seller = await open_both(buyer_service, seller_service, product)

        first = await buyer.send_offer(40)
        await wait_for(lambda: first.id in seller.store)
        counter = await seller.send_offer(46)
        await wait_for(lambda: counter.id in buyer.store)

        state = buyer.view().negotiation
        assert state.offers_made == 2
        assert state.round == 2
        assert state.last_offer == 46
        assert buyer.view().acceptable_message_ids == [counter.id]

        await buyer.accept_offer(message_id=counter.id)
        await wait_for(lambda: seller.view().negotiation.status == NegotiationStatus.ACCEPTED)
        assert seller.view().negotiation.final_price == 46

        await buyer.close()
        await seller.close()

    @pytest.mark.asyncio
    async def test_reject_ends_negotiation_for_both(self, buyer_service, seller_service, product):
        buyer, seller = await open_both(buyer_service, seller_service, product)

        lowball = await buyer.send_offer(10)
        await wait_for(lambda: lowball.id in seller.store)
        await seller.reject_offer()
        await wait_for(lambda: buyer.view().negotiation.status == NegotiationStatus.REJECTED)

        assert buyer.view().input_enabled is False
        assert seller.view().input_enabled is False
        assert buyer.view().negotiation.final_price is None

        await buyer.close()
        await seller.close()

    @pytest.mark.asyncio
    async def test_simultaneous_accepts_settle_once(self, backend, buyer_service, seller_service, product):
        buyer, seller = await open_both(buyer_service, seller_service, product)

        buyer_offer = await buyer.send_offer(45)
        await wait_for(lambda: buyer_offer.id in seller.store)
        seller_offer = await seller.send_offer(48)
        await wait_for(lambda: seller_offer.id in buyer.store)

        results = await asyncio.gather(
            buyer.accept_offer(message_id=seller_offer.id),
            seller.accept_offer(message_id=buyer_offer.id),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, Exception)]
        assert len(failures) == 1
        assert isinstance(failures[0], (SendError, OfferNotAllowedError))

        await wait_for(lambda: buyer.view().negotiation.status == NegotiationStatus.ACCEPTED
                       and seller.view().negotiation.status == NegotiationStatus.ACCEPTED)
        assert buyer.view().negotiation.final_price == seller.view().negotiation.final_price
        assert buyer.view().negotiation.final_price == backend.accepted[CHAT]

        await buyer.close()
        await seller.close()

    @pytest.mark.asyncio
    async def test_reloaded_history_matches_live_view(self, backend, buyer_service, seller_service, product):
        buyer, seller = await open_both(buyer_service, seller_service, product)

        await buyer.send_text("Hi! I'm interested in this product.")
        first = await buyer.send_offer(42)
        await wait_for(lambda: first.id in seller.store)
        counter = await seller.send_offer(47)
        await wait_for(lambda: counter.id in buyer.store)

        late = screen(buyer_service, "buyer", product)
        await late.open()

        assert [m.id for m in late.store.messages] == [m.id for m in buyer.store.messages]
        assert [m.id for m in seller.store.messages] == [m.id for m in buyer.store.messages]
        assert late.view().negotiation == buyer.view().negotiation
        assert late.view().negotiation == seller.view().negotiation

        for controller in (late, buyer, seller):
            await controller.close()
