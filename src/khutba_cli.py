"""Khutba Generator CLI

Request a generated khutba for a purpose and print it. When the sermon server
is unreachable, rejects the request, or errors out, a bundled sample sermon is
printed instead and the reason is reported.

Examples:
    python generate_khutba.py patience
    python generate_khutba.py "gratitude in hardship" --json
    python generate_khutba.py grief --timeout 60 --max-retries 4 -v
    python generate_khutba.py unity --download-audio downloads/

Config: defaults to ``config.yaml`` (override with ``--config`` or KHUTBA_CONFIG env var).
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import traceback
from collections.abc import Iterable
from urllib.parse import urlparse

import requests

from khutba_api import KhutbaClient
from khutba_config import load_config, setup_logging
from khutba_models import Sermon

logger = logging.getLogger(__name__)


def console_print(message: str, level: str = "info"):
    """Print messages to console with appropriate formatting.

    Args:
        message: Message to print
        level: Message level (info, warning, error, success)
    """
    if level == "error":
        print(f"❌ {message}")
    elif level == "warning":
        print(f"⚠️  {message}")
    elif level == "success":
        print(f"✅ {message}")
    else:
        print(f"ℹ️  {message}")


AUDIO_DOWNLOAD_TIMEOUT = 120


def download_file(url: str, local_path: str) -> int:
    """Stream ``url`` to ``local_path`` and return the number of bytes written."""
    written = 0
    with requests.get(url, stream=True, timeout=AUDIO_DOWNLOAD_TIMEOUT) as response:
        response.raise_for_status()
        with open(local_path, 'wb') as f:
            for chunk in response.iter_content(chunk_size=64 * 1024):
                f.write(chunk)
                written += len(chunk)
    logger.info(f"Downloaded {written} bytes of audio to {local_path}")
    return written


def download_sermon_audio(sermon: Sermon, output_dir: str, quiet: bool = False) -> str | None:
    """Save the sermon's audio into ``output_dir``; return the file path or None.

    With ``quiet`` problems are only logged, leaving stdout untouched.
    """
    if not sermon.full_audio_url:
        logger.warning("Sermon has no audio URL, nothing to download")
        if not quiet:
            console_print("Sermon has no audio URL, nothing to download", "warning")
        return None

    filename = os.path.basename(urlparse(sermon.full_audio_url).path) or 'khutba.wav'
    local_path = os.path.join(output_dir, filename)
    try:
        os.makedirs(output_dir, exist_ok=True)
        download_file(sermon.full_audio_url, local_path)
    except (requests.RequestException, OSError) as e:
        logger.error(f"Audio download failed: {e}")
        if not quiet:
            console_print(f"Audio download failed: {e}", "error")
        if os.path.isfile(local_path):
            os.remove(local_path)
        return None
    return local_path


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description="Generate a khutba for a purpose, falling back to sample sermons.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument('purpose', help='Topic or intent for the khutba')
    p.add_argument('--config', help='Config file (default: config.yaml or $KHUTBA_CONFIG)')
    p.add_argument('--timeout', type=float, help='Overall request timeout in seconds')
    p.add_argument('--max-retries', type=int, help='Retries after the first attempt')
    p.add_argument('--no-connectivity-check', action='store_true',
                   help='Skip the offline probe and call the API directly')
    p.add_argument('--json', action='store_true', help='Print the sermon as JSON')
    p.add_argument('--download-audio', metavar='DIR',
                   help='Download the sermon audio into DIR')
    p.add_argument('-v', '--verbose', action='store_true', help='Verbose debug output')
    return p


def apply_cli_overrides(config: dict, args: argparse.Namespace) -> dict:
    """Fold command-line options into the loaded config."""
    api = config['api'] = config.get('api') or {}
    if args.timeout is not None:
        api['timeout_seconds'] = args.timeout
    if args.max_retries is not None:
        api['max_retries'] = args.max_retries
    if args.no_connectivity_check:
        connectivity = config['connectivity'] = config.get('connectivity') or {}
        connectivity['enabled'] = False
    return config


def print_sermon(sermon: Sermon, as_json: bool = False):
    if as_json:
        print(json.dumps(sermon.to_dict(), indent=2, ensure_ascii=False))
        return

    if sermon.is_fallback:
        console_print(f"Showing sample sermon ({sermon.error_kind.value} error)", "warning")
    else:
        console_print("Khutba generated", "success")
    print()
    print(sermon.title)
    print("=" * len(sermon.title))
    print(sermon.text)
    print()
    print(f"🔊 {sermon.full_audio_url or '(no audio)'}")


def cli_main(argv: Iterable[str] | None = None) -> int:
    """CLI entry point.

    1. Parse args and configure logging
    2. Load config and fold in CLI overrides
    3. Request the khutba (never fails; may be a sample)
    4. Print it and optionally download the audio
    """
    parser = build_arg_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    setup_logging(args.verbose)

    try:
        config = load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        parser.error(str(e))
    config = apply_cli_overrides(config, args)

    purpose = args.purpose.strip()
    if not purpose:
        parser.error("purpose must not be empty")

    with KhutbaClient(config) as client:
        logger.debug(f"Using {client}")
        sermon = client.generate(purpose)

    print_sermon(sermon, as_json=args.json)

    if args.download_audio:
        local_path = download_sermon_audio(sermon, args.download_audio, quiet=args.json)
        if local_path and not args.json:
            console_print(f"Audio saved to {local_path}", "success")
    return 0


def main() -> int:
    try:
        return cli_main()
    except Exception as top_e:  # noqa: BLE001
        console_print(f"Fatal error: {top_e}", "error")
        traceback.print_exc()
        return 1


if __name__ == '__main__':  # pragma: no cover
    sys.exit(main())
