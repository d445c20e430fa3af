import asyncio
import errno
import json
import runpy
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import capabilities
import main
from alt_text_pipeline import AltTextPipeline
from capabilities import Capabilities
from config import Settings
from llm_stub import StubNetwork, StubTextModel, StubVisionModel


PAGE = 'https://x.test'
HTML = '<h1>Trail report</h1><p>Snow above the treeline.</p><img src="ridge.jpg" width="640" height="480" alt="Ridge">'


def _stub_caps(routes=None, seen=None, text=None):
    def factory(llm_url=None, *a, **kw):
        if seen is not None:
            seen.append(llm_url)
        return Capabilities(
            network=StubNetwork(routes if routes is not None else {PAGE: HTML, PAGE + '/ridge.jpg': b'\xff\xd8jpeg'}),
            text_model=text or StubTextModel(reply={'altText': 'Trail report on snow conditions', 'topic': 'Hiking'}),
            vision_model=StubVisionModel(describe={'altText': 'Snowy ridge under blue sky'}),
            model_target=llm_url,
        )
    return factory


def test_page_mode_prints_result(monkeypatch, capsys):
    monkeypatch.setattr(main, 'default_capabilities', _stub_caps())
    assert main.main([PAGE]) == 0
    out = capsys.readouterr().out
    assert 'Generating alt-text for: https://x.test' in out
    assert 'Alt-text: Trail report on snow conditions' in out
    assert 'Topic: Hiking' in out


def test_image_mode_prints_image(monkeypatch, capsys):
    monkeypatch.setattr(main, 'default_capabilities', _stub_caps())
    assert main.main(['--image', PAGE]) == 0
    out = capsys.readouterr().out
    assert 'Image URL: https://x.test/ridge.jpg' in out
    assert 'Alt-text: Snowy ridge under blue sky' in out
    assert 'Image dimensions: 640x480' in out


def test_combined_json(monkeypatch, capsys):
    monkeypatch.setattr(main, 'default_capabilities', _stub_caps())
    assert main.main(['--combined', '--json', PAGE]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data['pageAltText'] == 'Trail report on snow conditions'
    assert data['imageUrl'] == 'https://x.test/ridge.jpg'
    assert data['imageAltText'] == 'Snowy ridge under blue sky'


def test_page_not_found_exits_with_error(monkeypatch, capsys):
    monkeypatch.setattr(main, 'default_capabilities', _stub_caps(routes={PAGE: (404, 'gone')}))
    assert main.main([PAGE]) == 1
    err = capsys.readouterr().err
    assert 'Error:' in err
    assert 'Suggestion:' in err


def test_model_server_down_is_not_blamed_on_the_site(monkeypatch, capsys):
    refused = StubTextModel(error=ConnectionRefusedError(errno.ECONNREFUSED, 'Connection refused'))
    monkeypatch.setattr(main, 'default_capabilities', _stub_caps(text=refused))
    assert main.main(['--llm-url', 'http://127.0.0.1:1234', PAGE]) == 1
    err = capsys.readouterr().err
    assert 'Cannot connect to the model server' in err
    assert 'LM Studio' in err


class SlowTextModel:
    async def predict(self, system, user, response_schema=None):
        await asyncio.sleep(1)


def test_model_timeout_is_explained_as_a_model_timeout():
    caps = Capabilities(network=StubNetwork({PAGE: HTML}), text_model=SlowTextModel())
    pipeline = AltTextPipeline(caps, Settings(text_timeout=0.05))
    try:
        asyncio.run(pipeline.generate_page(PAGE))
    except Exception as e:
        err = e
    else:
        raise AssertionError('expected a timeout')
    message, suggestion = main.explain_failure(err, PAGE, 'http://127.0.0.1:1234/v1')
    assert 'did not respond in time' in message
    assert 'x.test' not in message
    assert suggestion


def test_page_timeout_is_explained_as_a_site_timeout():
    caps = Capabilities(network=StubNetwork({PAGE: TimeoutError()}), text_model=StubTextModel())
    try:
        asyncio.run(AltTextPipeline(caps).generate_page(PAGE))
    except Exception as e:
        err = e
    message, _ = main.explain_failure(err, PAGE, 'http://127.0.0.1:1234/v1')
    assert 'x.test' in message


def test_llm_url_is_normalized(monkeypatch, capsys):
    seen = []
    monkeypatch.setattr(main, 'default_capabilities', _stub_caps(seen=seen))
    assert main.main(['--llm-url', 'http://gpu.local:1234/', PAGE]) == 0
    assert seen == ['http://gpu.local:1234/v1']
    assert 'Using LLM at: http://gpu.local:1234/v1' in capsys.readouterr().out


def test_main_module_exit_code(monkeypatch):
    monkeypatch.setattr(capabilities, 'default_capabilities', _stub_caps())
    exit_codes = {'code': None}

    def fake_exit(code=0):
        exit_codes['code'] = code
        raise SystemExit(code)

    monkeypatch.setattr(sys, 'argv', ['main.py', '--json', PAGE])
    monkeypatch.setattr(sys, 'exit', fake_exit)
    try:
        runpy.run_module('main', run_name='__main__')
    except SystemExit:
        pass

    assert exit_codes['code'] == 0
