"""
Command-Line Interface for tts-service.

Runs the same Dispatcher as the HTTP API without starting a server, so
validation and error codes match /tts, /voices and /modes exactly.

Usage Examples:
    # List enabled modes
    tts-service --modes

    # Voice ids for a mode (or the backend's native payload)
    tts-service --voices espeak
    tts-service --voices gwent --raw

    # Synthesize
    tts-service "Hello world" --mode espeak --lang en --out hello.wav
    tts-service --text "Hola" --mode gtts --lang es --speaking-rate 0.8

    # Run the HTTP server
    tts-service --serve --bind 0.0.0.0:3000

Errors print ``{"code": N, "display": "..."}`` and exit with status 1.

Environment Variables:
    TTS_SERVICE_SETTINGS: Settings file (default: config/settings.yaml)
    AUTH_KEY: Shared secret; pass it with --auth when set
"""

from __future__ import annotations

import argparse
import asyncio
import json
import uuid
from pathlib import Path
from typing import List, Optional

from tts_service.core.config import ServiceConfig, load_settings
from tts_service.core.logging import configure_logging, get_logger, info, set_request_id
from tts_service.services.dispatcher import Dispatcher, create_dispatcher
from tts_service.services.errors import ApiError

_EXTENSIONS = {"audio/wav": "wav", "audio/mpeg": "mp3", "audio/ogg": "ogg"}


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="tts-service CLI")

    parser.add_argument("text_pos", nargs="?", help="Text to synthesize (positional)")
    parser.add_argument("--text", help="Text to synthesize")
    parser.add_argument("--mode", help="Backend mode (espeak, gtts, gcloud, polly, gwent)")
    parser.add_argument("--lang", help="Voice id for the mode")
    parser.add_argument("--speaking-rate", help="Speaking rate multiplier")
    parser.add_argument("--max-length", help="Reject text longer than this")
    parser.add_argument("--format", dest="preferred_format", help="Preferred output format (ogg/mp3/wav)")
    parser.add_argument("--out", help="Output file (default: out.<ext>)")

    parser.add_argument("--modes", action="store_true", help="List enabled modes")
    parser.add_argument("--voices", metavar="MODE", help="List voices for MODE")
    parser.add_argument("--raw", action="store_true", help="With --voices: native backend payload")

    parser.add_argument("--serve", action="store_true", help="Run the HTTP server")
    parser.add_argument("--bind", help="HOST:PORT for --serve (default: server.bind_addr)")

    parser.add_argument("--settings", help="Settings YAML path")
    parser.add_argument("--auth", help="Authorization value when an auth key is configured")

    return parser.parse_args(argv)


def _print_json(payload) -> None:
    print(json.dumps(payload, ensure_ascii=False))


def _output_path(out: Optional[str], content_type: str) -> Path:
    if out:
        path = Path(out)
    else:
        path = Path(f"out.{_EXTENSIONS.get(content_type, 'bin')}")
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


async def _run(dispatcher: Dispatcher, args: argparse.Namespace) -> int:
    log = get_logger("tts-service.cli")
    try:
        if args.modes:
            result, _ = await dispatcher.handle_modes(authorization=args.auth)
        elif args.voices:
            result, _ = await dispatcher.handle_voices(args.voices, args.raw, authorization=args.auth)
        else:
            query = {
                "text": args.text or args.text_pos,
                "lang": args.lang,
                "mode": args.mode,
                "speaking_rate": args.speaking_rate,
                "max_length": args.max_length,
                "preferred_format": args.preferred_format,
            }
            result, _ = await dispatcher.handle_tts(query, authorization=args.auth)
            if not isinstance(result, ApiError):
                out_path = _output_path(args.out, result.content_type)
                out_path.write_bytes(result.audio)
                info(log, "cli_synth_done", out=str(out_path), bytes=len(result.audio))
                result = {
                    "ok": True,
                    "out": str(out_path),
                    "bytes": len(result.audio),
                    "content_type": result.content_type,
                }
    finally:
        await dispatcher.aclose()

    if isinstance(result, ApiError):
        _print_json(result.to_dict())
        return 1
    _print_json(result)
    return 0


def _serve(config: ServiceConfig, bind: Optional[str]) -> int:
    import uvicorn

    from tts_service.main import create_app

    host, port = config.server.host, config.server.port
    if bind:
        host, _, port_s = bind.rpartition(":")
        if not host or not port_s.isdigit():
            raise SystemExit(f"--bind must look like HOST:PORT, got {bind!r}")
        port = int(port_s)
    app = create_app(create_dispatcher(config))
    uvicorn.run(app, host=host, port=port, log_config=None)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code (0 for success, 1 for a request error).
    """
    args = _parse_args(argv)

    configure_logging()
    set_request_id(str(uuid.uuid4())[:12])

    config = load_settings(args.settings).get_service_config()

    if args.serve:
        return _serve(config, args.bind)

    return asyncio.run(_run(create_dispatcher(config), args))


if __name__ == "__main__":
    raise SystemExit(main())
