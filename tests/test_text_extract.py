import asyncio
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from alt_text_models import HttpStatusError
from fetcher import extract_text, fetch_page
from llm_stub import StubNetwork
from resource_budget import ResourceMeter


def test_extract_text_strips_scripts_styles_and_tags():
    html = (
        '<html><head><style>p{color:red}</style><script>var x = "<b>";</script></head>'
        '<body><p>Hello&nbsp;&amp; welcome</p>\n\n<div>to   the  trail</div></body></html>'
    )
    assert extract_text(html) == 'Hello & welcome to the trail'


def test_extract_text_script_blocks_are_case_insensitive_and_multiline():
    html = '<SCRIPT type="text/javascript">\nalert(1);\n</SCRIPT>Visible<Style>\n.a{}\n</STYLE> text'
    assert extract_text(html) == 'Visible text'


def test_extract_text_decodes_only_the_fixed_entity_set():
    assert extract_text('&copy; 2024 &quot;Peak&quot; &#39;Guide&#39; &lt;b&gt;') == '&copy; 2024 "Peak" \'Guide\' <b>'


def test_extract_text_non_string_or_empty_input():
    assert extract_text(None) == ''
    assert extract_text('') == ''
    assert extract_text(12345) == ''
    assert extract_text(b'<p>bytes</p>') == ''


def test_extract_text_truncates_and_is_idempotent_on_plain_text():
    long = 'word ' * 5000
    out = extract_text(long)
    assert len(out) == 8000
    plain = 'Plain text about mountain safety and rescue'
    assert extract_text(plain) == plain
    assert extract_text(extract_text(plain)) == plain


def test_fetch_page_decodes_charset_and_charges_meter():
    url = 'https://x.test/page'
    body = 'Café des Alpes'.encode('latin-1')
    net = StubNetwork({url: (200, body, {'content-type': 'text/html; charset=ISO-8859-1'})})
    meter = ResourceMeter(100)
    html = asyncio.run(fetch_page(net, url, meter))
    assert html == 'Café des Alpes'
    assert meter.used == 10
    assert net.calls == [url]


def test_fetch_page_raises_for_error_status():
    url = 'https://x.test/missing'
    net = StubNetwork({url: (404, '<h1>Not found</h1>')})
    with pytest.raises(HttpStatusError) as exc:
        asyncio.run(fetch_page(net, url))
    assert exc.value.status == 404


def test_fetch_page_replaces_undecodable_bytes():
    url = 'https://x.test/bad'
    net = StubNetwork({url: (200, b'ok \xff\xfe done', {'content-type': 'text/html'})})
    html = asyncio.run(fetch_page(net, url))
    assert html.startswith('ok ') and html.endswith(' done')
