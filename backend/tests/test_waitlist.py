from datetime import datetime, timezone

import pytest

from backend.app.domain.errors import InvalidPartySize, InvalidTransition, NotFound
from backend.app.domain.models import WaitlistEntry, WaitlistStatus
from backend.app.engine.transitions import advance_waitlist
from backend.app.services.waitlist import WaitlistService

NOW = datetime(2030, 6, 3, 9, 10, tzinfo=timezone.utc)


def entry(status: WaitlistStatus = WaitlistStatus.WAITING) -> WaitlistEntry:
    return WaitlistEntry(
        id="w1",
        restaurant_id="r1",
        guest_name="Anna",
        guest_phone="+36301234567",
        party_size=2,
        status=status,
        created_at=NOW,
    )


class TestAdvanceWaitlist:
    def test_notify_then_seat_stamps_times(self):
        notified = advance_waitlist(entry(), WaitlistStatus.NOTIFIED, NOW)
        seated = advance_waitlist(notified, WaitlistStatus.SEATED, NOW.replace(minute=25))

        assert notified.notified_at == NOW
        assert seated.status is WaitlistStatus.SEATED
        assert seated.notified_at == NOW
        assert seated.seated_at == NOW.replace(minute=25)

    def test_waiting_can_be_seated_directly_unless_notice_required(self):
        assert advance_waitlist(entry(), WaitlistStatus.SEATED, NOW).status is WaitlistStatus.SEATED
        with pytest.raises(InvalidTransition):
            advance_waitlist(entry(), WaitlistStatus.SEATED, NOW, require_notify_before_seat=True)

    def test_notified_never_returns_to_waiting(self):
        with pytest.raises(InvalidTransition):
            advance_waitlist(entry(WaitlistStatus.NOTIFIED), WaitlistStatus.WAITING, NOW)

    @pytest.mark.parametrize("terminal", [WaitlistStatus.SEATED, WaitlistStatus.CANCELLED])
    @pytest.mark.parametrize("target", list(WaitlistStatus))
    def test_terminal_states_are_final(self, terminal, target):
        with pytest.raises(InvalidTransition):
            advance_waitlist(entry(terminal), target, NOW)

    def test_original_entry_is_untouched(self):
        original = entry()
        advance_waitlist(original, WaitlistStatus.CANCELLED, NOW)
        assert original.status is WaitlistStatus.WAITING


@pytest.mark.asyncio
class TestWaitlistService:
    async def test_join_and_queue_in_arrival_order(self, waitlist_service, seed_restaurant, clock):
        restaurant_id = await seed_restaurant()
        first = await waitlist_service.join(restaurant_id, guest_name="Anna", guest_phone="+361", party_size=2)
        clock.advance(minutes=3)
        second = await waitlist_service.join(
            restaurant_id, guest_name="Bela", guest_phone="+362", party_size=4, notes="high chair"
        )
        clock.advance(minutes=3)
        third = await waitlist_service.join(restaurant_id, guest_name="Cili", guest_phone="+363", party_size=3)

        await waitlist_service.cancel(second.id)
        queue = await waitlist_service.queue(restaurant_id)

        assert first.status is WaitlistStatus.WAITING
        assert first.created_at == NOW
        assert [e.id for e in queue] == [first.id, third.id]

    async def test_notified_entries_stay_in_queue(self, waitlist_service, seed_restaurant):
        restaurant_id = await seed_restaurant()
        joined = await waitlist_service.join(restaurant_id, guest_name="Anna", guest_phone="+361", party_size=2)

        await waitlist_service.notify(joined.id)

        assert [e.status for e in await waitlist_service.queue(restaurant_id)] == [WaitlistStatus.NOTIFIED]

    async def test_join_validation(self, waitlist_service, seed_restaurant):
        restaurant_id = await seed_restaurant()

        with pytest.raises(InvalidPartySize):
            await waitlist_service.join(restaurant_id, guest_name="Anna", guest_phone="+361", party_size=0)
        with pytest.raises(NotFound):
            await waitlist_service.join("missing", guest_name="Anna", guest_phone="+361", party_size=2)

    async def test_notify_sends_message_and_stamps_time(self, waitlist_service, seed_restaurant, notifier, clock):
        restaurant_id = await seed_restaurant()
        joined = await waitlist_service.join(
            restaurant_id, guest_name="Anna", guest_phone="+361", party_size=2, guest_email="anna@example.com"
        )
        clock.advance(minutes=10)

        notified = await waitlist_service.notify(joined.id)

        assert notified.status is WaitlistStatus.NOTIFIED
        assert notified.notified_at == clock()
        assert notifier.kinds() == ["waitlist_ready"]
        assert notifier.sent[0].restaurant_name == "Demo Bistro"
        assert notifier.sent[0].phone == "+361"

    async def test_notify_twice_is_rejected(self, waitlist_service, seed_restaurant):
        restaurant_id = await seed_restaurant()
        joined = await waitlist_service.join(restaurant_id, guest_name="Anna", guest_phone="+361", party_size=2)
        await waitlist_service.notify(joined.id)

        with pytest.raises(InvalidTransition):
            await waitlist_service.notify(joined.id)

    async def test_failed_message_keeps_transition(self, waitlist_service, seed_restaurant, notifier):
        restaurant_id = await seed_restaurant()
        joined = await waitlist_service.join(restaurant_id, guest_name="Anna", guest_phone="+361", party_size=2)
        notifier.fail_with = RuntimeError("twilio down")

        notified = await waitlist_service.notify(joined.id)

        assert notified.status is WaitlistStatus.NOTIFIED
        assert (await waitlist_service.queue(restaurant_id))[0].status is WaitlistStatus.NOTIFIED

    async def test_seat_directly_from_queue(self, waitlist_service, seed_restaurant):
        restaurant_id = await seed_restaurant()
        joined = await waitlist_service.join(restaurant_id, guest_name="Anna", guest_phone="+361", party_size=2)

        seated = await waitlist_service.seat(joined.id)

        assert seated.status is WaitlistStatus.SEATED
        assert seated.seated_at == NOW
        assert await waitlist_service.queue(restaurant_id) == []
        with pytest.raises(InvalidTransition):
            await waitlist_service.cancel(joined.id)

    async def test_seat_requires_notice_when_configured(self, sessions, notifier, clock, seed_restaurant):
        service = WaitlistService(sessions, notifier, clock=clock, require_notify_before_seat=True)
        restaurant_id = await seed_restaurant()
        joined = await service.join(restaurant_id, guest_name="Anna", guest_phone="+361", party_size=2)

        with pytest.raises(InvalidTransition):
            await service.seat(joined.id)
        await service.notify(joined.id)
        assert (await service.seat(joined.id)).status is WaitlistStatus.SEATED

    async def test_unknown_entry(self, waitlist_service):
        with pytest.raises(NotFound):
            await waitlist_service.seat("missing")

    async def test_join_respects_configured_party_limit(self, sessions, notifier, clock, seed_restaurant):
        service = WaitlistService(sessions, notifier, clock=clock, max_party_size=6)
        restaurant_id = await seed_restaurant()

        with pytest.raises(InvalidPartySize):
            await service.join(restaurant_id, guest_name="Anna", guest_phone="+361", party_size=7)
        assert (await service.join(restaurant_id, guest_name="Anna", guest_phone="+361", party_size=6)).party_size == 6
