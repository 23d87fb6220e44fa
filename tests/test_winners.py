"""
Tests for winner history, payouts and statistics
"""

from decimal import Decimal

import pytest

from chama_raffle.draw import RaffleDraw
from chama_raffle.engine import RaffleEngine
from chama_raffle.errors import ValidationError, WinnerNotFoundError
from chama_raffle.models import PAYMENT_PAID, PAYMENT_PENDING
from chama_raffle.winners import NO_CYCLE_MESSAGE, WinnerManager

from conftest import FEB, JAN, MAY, FixedOrderRandom, count_rows


@pytest.fixture
def drawn_january(engine, five_members):
    return RaffleDraw(engine, rng=FixedOrderRandom(['C', 'A', 'E', 'B', 'D'])).draw_winners(JAN)


def test_get_winners_ordered_with_member_details(engine, drawn_january):
    result = WinnerManager(engine).get_winners(2025, 0)

    assert result.message is None
    assert result.cycle.id == drawn_january.cycle.id
    assert [(w.user_id, w.position) for w in result.winners] == [('C', 1), ('A', 2)]
    assert result.winners[0].user.name == 'Member C'
    assert result.winners[0].user.email == 'c@chama.test'
    assert result.winners[0].amount == Decimal('100.00')


def test_get_winners_for_missing_cycle_is_read_only(engine, five_members):
    result = WinnerManager(engine).get_winners(2024, 6)

    assert result.cycle is None
    assert result.winners == []
    assert result.message == NO_CYCLE_MESSAGE
    assert count_rows(engine, 'raffle_cycles') == 0


def test_get_winners_for_cycle_without_draw(engine, five_members):
    manager = WinnerManager(engine)
    manager.cycles.get_current_cycle(FEB)

    result = manager.get_winners(2025, 1)

    assert result.cycle is not None
    assert result.winners == []
    assert result.message is None


def test_get_current_winners(engine, drawn_january):
    manager = WinnerManager(engine)

    assert len(manager.get_current_winners(JAN).winners) == 2
    assert manager.get_current_winners(MAY).message == NO_CYCLE_MESSAGE


def test_mark_paid_then_pending(engine, drawn_january):
    manager = WinnerManager(engine)
    winner_id = drawn_january.winners[0].id

    assert manager.update_payment_status(winner_id, PAYMENT_PAID) == {'success': True}
    paid = manager.get_winners(2025, 0).winners[0]
    assert paid.payment_status == PAYMENT_PAID
    assert paid.payment_date is not None

    manager.update_payment_status(winner_id, PAYMENT_PENDING)
    pending = manager.get_winners(2025, 0).winners[0]
    assert pending.payment_status == PAYMENT_PENDING
    assert pending.payment_date is None


def test_mark_paid_twice_is_allowed(engine, drawn_january):
    manager = WinnerManager(engine)
    winner_id = drawn_january.winners[1].id

    manager.update_payment_status(winner_id, PAYMENT_PAID)
    manager.update_payment_status(winner_id, PAYMENT_PAID)

    assert manager.get_winners(2025, 0).winners[1].payment_status == PAYMENT_PAID


def test_invalid_payment_status(engine, drawn_january):
    manager = WinnerManager(engine)

    with pytest.raises(ValidationError):
        manager.update_payment_status(drawn_january.winners[0].id, 'refunded')

    assert manager.get_winners(2025, 0).winners[0].payment_status == PAYMENT_PENDING


def test_unknown_winner(engine, drawn_january):
    with pytest.raises(WinnerNotFoundError):
        WinnerManager(engine).update_payment_status(9999, PAYMENT_PAID)


def test_statistics(engine, drawn_january):
    raffle = RaffleEngine(engine, rng=FixedOrderRandom(['E', 'B', 'D']))
    raffle.draw_winners(FEB)
    raffle.update_winner_payment_status(drawn_january.winners[0].id, PAYMENT_PAID)
    raffle.update_winner_payment_status(drawn_january.winners[1].id, PAYMENT_PAID)

    stats = raffle.get_statistics()

    assert stats['total_winners'] == 4
    assert stats['total_paid'] == Decimal('150.00')
    assert stats['total_cycles'] == 2
    assert stats['completed_cycles'] == 0
    assert [cycle.month for cycle in stats['recent_cycles']] == [1, 0]


def test_statistics_empty_database(engine):
    stats = WinnerManager(engine).get_statistics()

    assert stats['total_winners'] == 0
    assert stats['total_paid'] == Decimal('0.00')
    assert stats['total_cycles'] == 0
    assert stats['completed_cycles'] == 0
    assert stats['recent_cycles'] == []
