#!/usr/bin/env python3
"""
main.py
Command-line entry point:
  page alt-text       main.py <url>
  image alt-text      main.py --image <url>
  page + image        main.py --combined <url>

LLM_URL (or --llm-url) points at the OpenAI-compatible model server.
Exit status is 1 when the run fails.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

import openai

import config
from alt_text_models import CapabilityMissingError, NoUsableImageError
from alt_text_pipeline import FETCH_STAGES, AltTextPipeline, failed_stage
from capabilities import close_capabilities, default_capabilities, normalize_base_url
from error_classifier import classify_fetch, classify_model
from logging_config import configure_logging
from resource_budget import ResourceExhausted

# configure module-level logger; main() will configure root logging
logger = logging.getLogger(__name__)

RULE = "─" * 50


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Generate accessibility alt-text for a web page and its main image')
    parser.add_argument('url', help='Page URL to analyze')
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument('--image', '-i', action='store_true', help='Describe the most informative image on the page')
    mode.add_argument('--combined', action='store_true', help='Page alt-text plus image alt-text in one record')
    parser.add_argument('--json', action='store_true', help='Print the result as JSON')
    parser.add_argument('--llm-url', default=None, help=f'OpenAI-compatible server URL (default: LLM_URL or {config.DEFAULT_LLM_URL})')
    parser.add_argument('--log-level', default=None, help='Logging level (overridden by LOG_LEVEL)')
    return parser


def _print_page(result) -> None:
    print('Result:')
    print(RULE)
    print(f'URL: {result.url}')
    print(f'Topic: {result.topic}')
    print(f'Alt-text: {result.alt_text}')
    print(f'Resource used: {result.resource_used}')
    print(RULE)


def _print_image(result) -> None:
    print('Result:')
    print(RULE)
    print(f'Page URL: {result.url}')
    print(f'Image URL: {result.image_url}')
    if result.image_width and result.image_height:
        print(f'Image dimensions: {result.image_width}x{result.image_height}')
    if result.image_size_bytes:
        print(f'Image size: {result.image_size_bytes / 1024:.2f} KB')
    print(f'Score: {result.score:.1f} ({result.score_source})')
    print(f'Alt-text: {result.alt_text}')
    if result.description:
        print(f'Description: {result.description}')
    print(RULE)


def _print_record(record) -> None:
    print('Result:')
    print(RULE)
    print(f'URL: {record.url}')
    print(f'Topic: {record.page_topic}')
    print(f'Alt-text: {record.page_alt_text}')
    if record.has_image:
        print(f'Image URL: {record.image_url}')
        print(f'Image alt-text: {record.image_alt_text}')
        if record.image_description:
            print(f'Image description: {record.image_description}')
    for err in (record.fetch_error, record.model_error):
        if err is not None:
            print(f'Suggestion: {err.suggestion}')
    print(f'Resource used: {record.resource_used}')
    print(RULE)


def _as_dict(result) -> dict:
    if hasattr(result, 'to_dict'):
        return result.to_dict()
    return {k: v for k, v in vars(result).items() if v is not None}


def explain_failure(err: BaseException, url: str, llm_url: str):
    """Return (message, suggestion) for an error that ended a CLI run."""
    if isinstance(err, (ResourceExhausted, NoUsableImageError, CapabilityMissingError)):
        return str(err), None
    stage = failed_stage(err)
    if stage is not None:
        model_side = stage not in FETCH_STAGES
    else:
        model_side = isinstance(err, openai.OpenAIError) or 'No models loaded' in str(err)
    if model_side:
        info = classify_model(err, llm_url)
    else:
        info = classify_fetch(err, url)
    return info.message, info.suggestion


async def _run(args, llm_url: str):
    caps = default_capabilities(llm_url)
    try:
        pipeline = AltTextPipeline(caps, config.load_settings())
        if args.image:
            return await pipeline.generate_image(args.url)
        if args.combined:
            return await pipeline.generate_combined(args.url)
        return await pipeline.generate_page(args.url)
    finally:
        await close_capabilities(caps)


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    configure_logging(args.log_level)
    llm_url = normalize_base_url(args.llm_url or config.LLM_URL)

    if not args.json:
        what = 'image alt-text' if args.image else 'alt-text'
        print(f'Generating {what} for: {args.url}')
        print(f'Using LLM at: {llm_url}\n')

    try:
        result = asyncio.run(_run(args, llm_url))
    except Exception as e:
        logger.debug('Run failed', exc_info=True)
        message, suggestion = explain_failure(e, args.url, llm_url)
        print(f'Error: {message}', file=sys.stderr)
        if suggestion:
            print(f'Suggestion: {suggestion}', file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(_as_dict(result), indent=2, ensure_ascii=False))
    elif args.image:
        _print_image(result)
    elif args.combined:
        _print_record(result)
    else:
        _print_page(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
