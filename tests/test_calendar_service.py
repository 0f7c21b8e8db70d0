import calendar as stdlib_calendar

import pytest

from services.calendar_service import (
    GRID_SIZE,
    aggregate_month,
    build_month_grid,
    date_key,
    first_weekday,
    month_bounds,
    shift_month,
)


def test_february_2024_leap_year_layout():
    grid = build_month_grid(2024, 1)

    assert len(grid) == 42
    assert grid[:4] == [None, None, None, None]
    assert grid[4:33] == list(range(1, 30))
    assert grid[33:] == [None] * 9


@pytest.mark.parametrize("year", [1999, 2000, 2023, 2024, 2100])
def test_every_month_has_42_slots_and_all_its_days(year):
    for month_index in range(12):
        grid = build_month_grid(year, month_index)
        filled = [cell for cell in grid if cell is not None]

        assert len(grid) == GRID_SIZE
        assert filled == list(range(1, stdlib_calendar.monthrange(year, month_index + 1)[1] + 1))


def test_first_slot_filled_only_when_month_starts_on_sunday():
    for year in (2023, 2024, 2025):
        for month_index in range(12):
            grid = build_month_grid(year, month_index)
            starts_on_sunday = first_weekday(year, month_index) == 0
            assert (grid[0] is not None) == starts_on_sunday


def test_september_2024_starts_on_sunday():
    assert first_weekday(2024, 8) == 0
    assert build_month_grid(2024, 8)[0] == 1


@pytest.mark.parametrize("month_index", [-1, 12])
def test_month_index_out_of_range_is_rejected(month_index):
    with pytest.raises(ValueError):
        build_month_grid(2024, month_index)


def test_aggregate_month_counts_and_total():
    receipts = [
        {"date": "2024-02-01", "amount": 12.5},
        {"date": "2024-02-01", "amount": "7.25"},
        {"date": "2024-02-29", "amount": "not a number"},
        {"date": "2024-02-10", "amount": None},
    ]

    counts, total = aggregate_month(receipts)

    assert counts == {1: 2, 29: 1, 10: 1}
    assert sum(counts.values()) == len(receipts)
    assert str(total) == "19.75"


def test_aggregate_month_empty():
    counts, total = aggregate_month([])
    assert counts == {}
    assert total == 0


def test_shift_month_wraps_years():
    assert shift_month(2024, 0, -1) == (2023, 11)
    assert shift_month(2023, 11, 1) == (2024, 0)
    assert shift_month(2024, 5, 1) == (2024, 6)
    assert shift_month(2024, 5, -18) == (2022, 11)


def test_date_key_is_zero_padded():
    assert date_key(2024, 1, 9) == "2024-02-09"
    assert date_key(2024, 11, 31) == "2024-12-31"


def test_date_key_rejects_days_outside_month():
    with pytest.raises(ValueError):
        date_key(2023, 1, 29)
    with pytest.raises(ValueError):
        date_key(2023, 1, 0)


def test_month_bounds():
    assert month_bounds(2024, 1) == ("2024-02-01", "2024-02-29")
    assert month_bounds(2023, 3) == ("2023-04-01", "2023-04-30")
