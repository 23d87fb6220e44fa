"""
Tests for cycle creation, inheritance and eligibility maintenance
"""

import pytest
from sqlalchemy import text

from chama_raffle.cycles import CycleManager
from chama_raffle.draw import RaffleDraw
from chama_raffle.errors import CycleNotFoundError, ValidationError
from chama_raffle.models import CYCLE_SEEDED, Member

from conftest import APR, FEB, JAN, MAR, MAY, FixedOrderRandom, count_rows


def test_first_month_seeded_from_active_members(engine, add_users):
    add_users('A', 'B', 'C')
    add_users('X', status='suspended')

    cycle = CycleManager(engine).get_current_cycle(JAN)

    assert (cycle.year, cycle.month) == (2025, 0)
    assert cycle.eligible_users == ['A', 'B', 'C']
    assert cycle.drawn_users == []
    assert cycle.winners_count == 0
    assert cycle.is_completed is False
    assert cycle.state == CYCLE_SEEDED


def test_get_current_cycle_is_idempotent(engine, five_members):
    manager = CycleManager(engine)

    first = manager.get_current_cycle(JAN)
    second = manager.get_current_cycle(JAN)

    assert first.id == second.id
    assert count_rows(engine, 'raffle_cycles') == 1
    assert count_rows(engine, 'raffle_cycle_members') == 5


def test_later_directory_changes_do_not_touch_existing_cycle(engine, add_users):
    add_users('A', 'B')
    manager = CycleManager(engine)
    manager.get_current_cycle(JAN)

    add_users('C')

    assert manager.get_current_cycle(JAN).eligible_users == ['A', 'B']


def test_first_month_with_no_members_is_empty(engine):
    cycle = CycleManager(engine).get_current_cycle(JAN)

    assert cycle.eligible_users == []
    assert cycle.pool_size == 0


def test_second_month_inherits_previous_pool(engine, five_members):
    draw = RaffleDraw(engine, rng=FixedOrderRandom(['C', 'A', 'E', 'B', 'D']))
    draw.draw_winners(JAN)

    february = CycleManager(engine).get_current_cycle(FEB)

    assert february.drawn_users == ['C', 'A']
    assert february.eligible_users == ['B', 'D', 'E']
    assert february.winners_count == 0
    assert february.pool_size == 5


def test_inherits_undrawn_month_unchanged(engine, five_members):
    manager = CycleManager(engine)
    manager.get_current_cycle(JAN)

    february = manager.get_current_cycle(FEB)

    assert february.eligible_users == ['A', 'B', 'C', 'D', 'E']
    assert february.drawn_users == []


def test_gap_inherits_from_most_recent_earlier_month(engine, five_members):
    draw = RaffleDraw(engine, rng=FixedOrderRandom(['D', 'B']))
    draw.draw_winners(JAN)

    march = CycleManager(engine).get_current_cycle(MAR)

    assert march.drawn_users == ['D', 'B']
    assert march.eligible_users == ['A', 'C', 'E']


def test_gap_with_no_earlier_cycle_seeds_from_directory(engine, five_members):
    march = CycleManager(engine).get_current_cycle(MAR)

    assert march.eligible_users == ['A', 'B', 'C', 'D', 'E']
    assert march.drawn_users == []


def test_last_month_of_quarter_has_empty_eligible_pool(engine, five_members):
    manager = CycleManager(engine)
    RaffleDraw(engine, rng=FixedOrderRandom(['C', 'A'])).draw_winners(MAR)

    april = manager.get_current_cycle(APR)

    assert april.eligible_users == []
    assert april.drawn_users == ['C', 'A']


def test_new_quarter_starts_fresh(engine, five_members):
    RaffleDraw(engine, rng=FixedOrderRandom(['C', 'A'])).draw_winners(MAR)

    may = CycleManager(engine).get_current_cycle(MAY)

    assert may.eligible_users == ['A', 'B', 'C', 'D', 'E']
    assert may.drawn_users == []


def test_eligible_and_drawn_never_overlap(engine, five_members):
    draw = RaffleDraw(engine, rng=FixedOrderRandom(['E', 'D', 'C', 'B', 'A']))
    draw.draw_winners(JAN)
    draw.draw_winners(FEB)

    for cycle in CycleManager(engine).list_cycles():
        assert not set(cycle.eligible_users) & set(cycle.drawn_users)


def test_get_cycle_does_not_create(engine, five_members):
    manager = CycleManager(engine)

    assert manager.get_cycle(2025, 0) is None
    assert manager.get_cycle_by_id(42) is None
    assert count_rows(engine, 'raffle_cycles') == 0


def test_list_cycles_newest_first(engine, five_members):
    manager = CycleManager(engine)
    for as_of in (JAN, FEB, MAY):
        manager.get_current_cycle(as_of)

    months = [cycle.month for cycle in manager.list_cycles()]

    assert months == [4, 1, 0]
    assert len(manager.list_cycles(limit=2)) == 2


def test_add_eligible_users_appends_and_dedupes(engine, five_members):
    manager = CycleManager(engine)
    cycle = manager.get_current_cycle(JAN)

    result = manager.add_eligible_users(cycle.id, [
        'F',
        Member(id='G', name='Member G'),
        {'id': 'F', 'name': 'Member F'},
        'A',
    ])

    assert result == {'success': True, 'added_count': 2}
    assert manager.get_cycle_by_id(cycle.id).eligible_users == ['A', 'B', 'C', 'D', 'E', 'F', 'G']


def test_add_eligible_users_skips_drawn_members(engine, five_members):
    RaffleDraw(engine, rng=FixedOrderRandom(['C', 'A'])).draw_winners(JAN)
    manager = CycleManager(engine)
    cycle = manager.get_cycle(2025, 0)

    result = manager.add_eligible_users(cycle.id, ['C', 'A'])

    assert result['added_count'] == 0
    assert manager.get_cycle_by_id(cycle.id).drawn_users == ['C', 'A']


def test_add_eligible_users_unknown_cycle(engine):
    with pytest.raises(CycleNotFoundError):
        CycleManager(engine).add_eligible_users(999, ['A'])


def test_add_eligible_users_rejects_missing_ids(engine, five_members):
    manager = CycleManager(engine)
    cycle = manager.get_current_cycle(JAN)

    with pytest.raises(ValidationError):
        manager.add_eligible_users(cycle.id, [{'name': 'No Id'}])

    assert manager.get_cycle_by_id(cycle.id).pool_size == 5


def test_concurrent_creation_returns_existing_cycle(engine, five_members, monkeypatch):
    manager = CycleManager(engine)
    real_membership = manager._initial_membership
    competing = {}

    def membership_then_lose_race(period):
        membership = real_membership(period)
        # Another request commits the same (year, month) before our INSERT
        with engine.begin() as conn:
            competing['id'] = conn.execute(text("""
                INSERT INTO raffle_cycles (year, month, winners_count, is_completed)
                VALUES (:year, :month, 0, :is_completed)
                RETURNING id
            """), {'year': period.year, 'month': period.month, 'is_completed': False}).scalar()
            conn.execute(text("""
                INSERT INTO raffle_cycle_members (cycle_id, user_id, status, seq)
                VALUES (:cycle_id, 'B', 'eligible', 1)
            """), {'cycle_id': competing['id']})
        return membership

    monkeypatch.setattr(manager, '_initial_membership', membership_then_lose_race)

    cycle = manager.get_current_cycle(JAN)

    assert cycle.id == competing['id']
    assert cycle.eligible_users == ['B']
    assert count_rows(engine, 'raffle_cycles') == 1
    assert count_rows(engine, 'raffle_cycle_members') == 1
