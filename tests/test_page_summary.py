import asyncio
import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from alt_text_models import CapabilityMissingError
from capabilities import ModelReply
from llm_stub import StubTextModel
from page_summary import build_page_prompt, parse_structured_reply, summarize_page
from resource_budget import ResourceMeter


URL = 'https://trails.example.org/guide'


def test_json_reply_is_parsed_into_fields():
    model = StubTextModel(reply={'altText': 'Guide to alpine hiking routes in the Coast Mountains', 'topic': 'Hiking'})
    ctx = asyncio.run(summarize_page(model, URL, 'Some page text about trails'))
    assert ctx.alt_text == 'Guide to alpine hiking routes in the Coast Mountains'
    assert ctx.topic == 'Hiking'
    call = model.calls[0]
    assert call['schema']['name'] == 'alt_text_result'
    assert call['schema']['schema']['required'] == ['altText', 'topic']
    assert 'accessibility expert' in call['system']


def test_json_wrapped_in_prose_is_recovered():
    model = StubTextModel(reply='Sure! ```json\n{"altText": "Trail guide", "topic": "Hiking"}\n``` Hope this helps')
    ctx = asyncio.run(summarize_page(model, URL, 'text'))
    assert (ctx.alt_text, ctx.topic) == ('Trail guide', 'Hiking')


def test_unparseable_reply_becomes_alt_text():
    model = StubTextModel(reply='  A guide to alpine hiking routes  ')
    ctx = asyncio.run(summarize_page(model, URL, 'text'))
    assert ctx.alt_text == 'A guide to alpine hiking routes'
    assert ctx.topic is None


def test_json_string_reply_is_unquoted():
    model = StubTextModel(reply='"Alpine trail guide"')
    ctx = asyncio.run(summarize_page(model, URL, 'text'))
    assert ctx.alt_text == 'Alpine trail guide'
    assert ctx.topic is None
    # a quote that does not close is kept as written
    model = StubTextModel(reply='"Alpine trail guide')
    assert asyncio.run(summarize_page(model, URL, 'text')).alt_text == '"Alpine trail guide'


def test_prompt_uses_first_3000_characters():
    text = 'a' * 2999 + 'bc' + 'z' * 2000
    prompt = build_page_prompt(URL, text)
    assert URL in prompt
    assert 'a' * 2999 + 'b' in prompt
    assert 'bc' not in prompt
    assert 'z' not in prompt.split('characters):', 1)[1].split('Based on', 1)[0]


def test_empty_text_asks_for_domain_based_guess():
    for empty in ('', '   \n ', None):
        prompt = build_page_prompt(URL, empty)
        assert 'No text content could be extracted' in prompt
        assert 'generic description based on the URL domain' in prompt


def test_meter_is_charged_for_prompt_and_generation():
    meter = ResourceMeter(1000)
    asyncio.run(summarize_page(StubTextModel(), URL, 'text', meter))
    assert meter.used == 101


def test_missing_text_model_raises():
    with pytest.raises(CapabilityMissingError):
        asyncio.run(summarize_page(None, URL, 'text'))


def test_transport_errors_and_timeouts_propagate():
    with pytest.raises(ConnectionRefusedError):
        asyncio.run(summarize_page(StubTextModel(error=ConnectionRefusedError('refused')), URL, 'text'))

    class SlowModel:
        async def predict(self, system, user, response_schema=None):
            await asyncio.sleep(1)
            return ModelReply(content='{}')

    with pytest.raises(asyncio.TimeoutError):
        asyncio.run(summarize_page(SlowModel(), URL, 'text', timeout=0.01))


def test_parse_structured_reply_edge_cases():
    assert parse_structured_reply(json.dumps({'a': 1})) == {'a': 1}
    assert parse_structured_reply({'a': 2}) == {'a': 2}
    assert parse_structured_reply('[1, 2, 3]') is None
    assert parse_structured_reply('') is None
    assert parse_structured_reply(None) is None
    assert parse_structured_reply('prefix {"a": {"b": 1}} suffix') == {'a': {'b': 1}}
    assert parse_structured_reply('{not json}') is None
