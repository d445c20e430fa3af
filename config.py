"""Simple runtime configuration for the alt-text pipeline.

This module supports a visible, file-based configuration with environment
overrides.

Files (repo root):
- config.json (committed, optional): default settings
- config.local.json (optional, gitignored): developer/local overrides

Precedence (highest first):
1) Env vars (LLM_URL, LLM_API_KEY, TEXT_MODEL, VISION_MODEL, MAX_CANDIDATES,
   FALLBACK_SCORE_CAP, *_TIMEOUT_S, *_BUDGET)
2) config.local.json
3) config.json
4) Built-in defaults

Keys:
- llm_url: OpenAI-compatible endpoint (LM Studio by default)
- llm_api_key: key sent to the endpoint (local servers ignore it)
- models.text / models.vision: model ids; empty means "first model the
  server lists"
- timeouts.*: per-operation-kind timeouts in seconds
- budgets.*: resource budget per workflow
- max_candidates: images kept after filtering
- fallback_score_cap: ceiling for heuristic image scores
"""

import os
import json
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(dotenv_path=str(Path(__file__).parent / '.env'), override=False)

DEFAULT_LLM_URL = 'http://127.0.0.1:1234/v1'

# Built-in defaults
_DEFAULTS = {
	"llm_url": DEFAULT_LLM_URL,
	"llm_api_key": "lm-studio",
	"temperature": 0.7,
	"models": {
		"text": "",
		"vision": "",
	},
	"timeouts": {
		"page_fetch": 30.0,
		"text_generation": 60.0,
		"vision": 120.0,
		"image_fetch": 180.0,
	},
	"budgets": {
		"page": 10000,
		"image": 50000,
		"combined": 50000,
	},
	"max_candidates": 3,
	"fallback_score_cap": 50.0,
}


def _load_json_safe(p: Path) -> dict:
	if not p.exists():
		return {}
	try:
		with p.open('r', encoding='utf-8') as f:
			data = json.load(f)
	except (OSError, json.JSONDecodeError):
		return {}
	return data if isinstance(data, dict) else {}


def _merge(base: dict, override: dict) -> dict:
	# nested sections are merged one level deep
	out = dict(base)
	for k, v in override.items():
		if isinstance(v, dict) and isinstance(out.get(k), dict):
			out[k] = {**out[k], **v}
		else:
			out[k] = v
	return out


_ROOT = Path(__file__).parent
_CFG = _merge(_DEFAULTS, _load_json_safe(_ROOT / 'config.json'))
_CFG = _merge(_CFG, _load_json_safe(_ROOT / 'config.local.json'))


def _env_float(name: str, current):
	raw = os.getenv(name)
	if not raw:
		return current
	try:
		return float(raw)
	except ValueError:
		return current


def _env_int(name: str, current):
	raw = os.getenv(name)
	if not raw:
		return current
	try:
		return int(raw)
	except ValueError:
		return current


# Env overrides (highest precedence)
if os.getenv('LLM_URL'):
	_CFG['llm_url'] = os.getenv('LLM_URL')
if os.getenv('LLM_API_KEY'):
	_CFG['llm_api_key'] = os.getenv('LLM_API_KEY')
if os.getenv('TEXT_MODEL'):
	_CFG['models']['text'] = os.getenv('TEXT_MODEL')
if os.getenv('VISION_MODEL'):
	_CFG['models']['vision'] = os.getenv('VISION_MODEL')
for _key in ('page_fetch', 'text_generation', 'vision', 'image_fetch'):
	_CFG['timeouts'][_key] = _env_float(f'{_key.upper()}_TIMEOUT_S', _CFG['timeouts'][_key])
for _key in ('page', 'image', 'combined'):
	_CFG['budgets'][_key] = _env_int(f'{_key.upper()}_BUDGET', _CFG['budgets'][_key])
_CFG['max_candidates'] = _env_int('MAX_CANDIDATES', _CFG['max_candidates'])
_CFG['fallback_score_cap'] = _env_float('FALLBACK_SCORE_CAP', _CFG['fallback_score_cap'])

# Exported constants
LLM_URL = _CFG['llm_url']
LLM_API_KEY = _CFG['llm_api_key']
TEMPERATURE = float(_CFG.get('temperature', _DEFAULTS['temperature']))
TEXT_MODEL = _CFG['models'].get('text') or None
VISION_MODEL = _CFG['models'].get('vision') or None

PAGE_FETCH_TIMEOUT_S = float(_CFG['timeouts']['page_fetch'])
TEXT_TIMEOUT_S = float(_CFG['timeouts']['text_generation'])
VISION_TIMEOUT_S = float(_CFG['timeouts']['vision'])
IMAGE_FETCH_TIMEOUT_S = float(_CFG['timeouts']['image_fetch'])

PAGE_BUDGET = int(_CFG['budgets']['page'])
IMAGE_BUDGET = int(_CFG['budgets']['image'])
COMBINED_BUDGET = int(_CFG['budgets']['combined'])

MAX_CANDIDATES = int(_CFG['max_candidates'])
FALLBACK_SCORE_CAP = float(_CFG['fallback_score_cap'])

PAGE_TEXT_LIMIT = 8000
PROMPT_TEXT_LIMIT = 3000


@dataclass
class Settings:
	"""Snapshot of the tunables a pipeline run reads."""

	page_fetch_timeout: float = PAGE_FETCH_TIMEOUT_S
	text_timeout: float = TEXT_TIMEOUT_S
	vision_timeout: float = VISION_TIMEOUT_S
	image_fetch_timeout: float = IMAGE_FETCH_TIMEOUT_S
	page_budget: int = PAGE_BUDGET
	image_budget: int = IMAGE_BUDGET
	combined_budget: int = COMBINED_BUDGET
	max_candidates: int = MAX_CANDIDATES
	fallback_score_cap: float = FALLBACK_SCORE_CAP


def load_settings(**overrides) -> Settings:
	return Settings(**overrides)
