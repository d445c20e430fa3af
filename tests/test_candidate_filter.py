import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from alt_text_models import ImageCandidate
from candidate_filter import filter_candidates, is_eligible


def _c(url, **kw):
    return ImageCandidate(url=url, **kw)


def test_area_only_entries_rank_by_area():
    images = [_c(f'https://x.test/{a}.jpg', area=a) for a in (5, 50, 150, 20000, 99)]
    kept = filter_candidates(images, 3)
    assert [c.area for c in kept][:2] == [20000, 150]
    # the remaining slot goes to an entry with no dimensions at all
    assert len(kept) == 3
    assert kept[2].area == 99


def test_eligibility_rules():
    assert is_eligible(_c('a', width=20, height=20))          # area 400
    assert is_eligible(_c('b', width=50, height=2))           # one side > 10
    assert is_eligible(_c('c', width=None, height=40))        # one side known and > 10
    assert is_eligible(_c('d'))                               # nothing known
    assert not is_eligible(_c('e', width=5, height=5))
    assert not is_eligible(_c('f', height=5))
    assert not is_eligible(_c('g', width=10, height=10))


def test_known_area_outranks_unknown_then_width():
    images = [
        _c('no-dims'),
        _c('narrow', width=300),
        _c('small-area', width=20, height=20),
        _c('wide', width=500),
        _c('big-area', width=100, height=100),
    ]
    kept = filter_candidates(images, 10)
    assert [c.url for c in kept] == ['big-area', 'small-area', 'wide', 'narrow', 'no-dims']


def test_order_is_stable_for_equal_keys_and_truncates():
    images = [_c(f'u{i}', width=200, height=100) for i in range(5)]
    kept = filter_candidates(images, 3)
    assert [c.url for c in kept] == ['u0', 'u1', 'u2']
    assert filter_candidates(images, 0) == []
    assert filter_candidates([], 3) == []
