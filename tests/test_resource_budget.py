import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from resource_budget import COSTS, ResourceExhausted, ResourceMeter, cost_of


def test_charges_accumulate_per_kind():
    m = ResourceMeter(1000)
    m.charge('page_fetch')
    m.charge('text_generation')
    m.charge('image_fetch', 3)
    assert m.used == 10 + 100 + 30
    assert m.charges == {'page_fetch': 10, 'text_generation': 100, 'image_fetch': 30}
    assert m.remaining() == 1000 - 140


def test_exhaustion_raises_before_spending():
    m = ResourceMeter(250)
    m.charge('vision_score')
    with pytest.raises(ResourceExhausted) as exc:
        m.charge('vision_score')
    assert m.used == 200
    assert exc.value.kind == 'vision_score'
    assert exc.value.budget == 250


def test_exact_budget_is_allowed():
    m = ResourceMeter(COSTS['text_generation'])
    m.charge('text_generation')
    assert m.remaining() == 0


def test_unknown_kind_is_rejected():
    with pytest.raises(ValueError):
        cost_of('teleport')
