import pytest

from pagination import LATEST, PageWindow, compute_window, page_count


def test_latest_page_of_47_items():
    window = compute_window(47, 10, LATEST)
    assert (window.offset, window.limit) == (40, 10)
    assert window.page == 5
    assert window.page_count == 5


def test_latest_page_when_total_is_exact_multiple():
    window = compute_window(40, 10, LATEST)
    assert window.offset == 30
    assert window.page == 4


def test_latest_page_of_empty_collection_starts_at_zero():
    window = compute_window(0, 10, LATEST)
    assert window.offset == 0
    assert window.page == 1
    assert window.page_count == 1


@pytest.mark.parametrize("requested, offset", [
    (None, 0),
    (1, 0),
    (3, 20),
    ("2", 10),
    (" 4 ", 30),
])
def test_numbered_pages(requested, offset):
    assert compute_window(100, 10, requested).offset == offset


@pytest.mark.parametrize("requested", [0, -3, "abc", "", "-1", "²", "1.5"])
def test_out_of_range_or_garbage_requests_clamp_to_first_page(requested):
    window = compute_window(100, 10, requested)
    assert window.offset == 0
    assert window.page == 1


def test_page_past_the_end_is_served_empty():
    window = compute_window(15, 10, 7)
    assert window.offset == 20
    assert window.offset >= 15
    assert window.page_count == 2


@pytest.mark.parametrize("requested", [99999999999999999999999, "99999999999999999999999"])
def test_huge_page_numbers_stay_bounded(requested):
    window = compute_window(47, 10, requested)
    assert window.offset == 50
    assert window.page == 6
    assert window.offset < 2 ** 63


@pytest.mark.parametrize("page_size", [0, None, -5])
def test_unlimited_page_size_disables_windowing(page_size):
    assert compute_window(47, page_size, LATEST) == PageWindow(offset=0, limit=None)


def test_page_count():
    assert page_count(0, 10) == 1
    assert page_count(10, 10) == 1
    assert page_count(11, 10) == 2
    assert page_count(11, 0) == 1
