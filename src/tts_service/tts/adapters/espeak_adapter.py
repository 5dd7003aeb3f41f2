"""
espeak adapter: local ``espeak-ng`` binary.

Text is written to the process's stdin (never passed on the command line)
and WAV audio is read from stdout. The speaking rate is a multiplier of
the configured base words-per-minute.

Voice list is parsed from ``espeak-ng --voices``:

    Pty Language       Age/Gender VoiceName          File                 Other Languages
     5  af              --/M      Afrikaans          gmw/af
     2  en-gb           --/M      English_(Great_Britain) gmw/en          (en 2)
"""
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Sequence

from tts_service.core.config import EspeakConfig
from tts_service.core.logging import debug
from tts_service.tts.adapter import (
    AudioFormat,
    BaseAdapter,
    Capabilities,
    RateRange,
    SynthesisRequest,
    SynthesisResult,
    Voice,
    VoiceListing,
)
from tts_service.tts.errors import BackendTimeoutError, MalformedResponseError, ProcessError


def parse_voices_output(output: str) -> List[Dict[str, Any]]:
    """
    Parse ``espeak-ng --voices`` into one dict per voice.

    Returns:
        List of {"language", "gender", "name", "file"} dicts, in output
        order. Lines that do not have at least five columns are skipped.
    """
    voices: List[Dict[str, Any]] = []
    for line in output.splitlines():
        parts = line.split()
        if len(parts) < 5 or parts[0] == "Pty":
            continue
        age_gender = parts[2]
        voices.append({
            "language": parts[1],
            "gender": age_gender.split("/", 1)[-1],
            "name": parts[3].replace("_", " "),
            "file": parts[4],
        })
    return voices


class EspeakAdapter(BaseAdapter):
    mode = "espeak"

    def __init__(self, config: EspeakConfig):
        super().__init__(voices_ttl_s=config.voices_ttl_s)
        self.config = config
        self._capabilities = Capabilities(
            rate_range=RateRange(0.5, 4.0),
            formats=(AudioFormat.WAV,),
            default_format=AudioFormat.WAV,
            default_voice=config.default_voice,
        )

    async def _run(self, args: Sequence[str], input: Optional[bytes] = None) -> bytes:
        """
        Run espeak-ng and return its stdout.

        Raises:
            ProcessError: Binary missing, or non-zero exit status.
            BackendTimeoutError: The process outlived ``timeout_s``; it is killed.
        """
        cmd = [self.config.binary, *args]
        debug(self.logger, "espeak_exec", args=" ".join(args))
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE if input is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise ProcessError(
                f"Unable to start {self.config.binary}: {exc}", mode=self.mode
            ) from exc

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(input), timeout=self.config.timeout_s)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise BackendTimeoutError(
                f"{self.config.binary} did not finish within {self.config.timeout_s:g}s", mode=self.mode
            ) from None

        if proc.returncode != 0:
            err = stderr.decode("utf-8", errors="replace").strip()
            raise ProcessError(
                f"{self.config.binary} exited with status {proc.returncode}: {err}",
                mode=self.mode,
                returncode=proc.returncode,
                stderr=err,
            )
        return stdout

    async def _fetch_voices(self) -> VoiceListing:
        output = await self._run(["--voices"])
        raw = parse_voices_output(output.decode("utf-8", errors="replace"))
        voices = tuple(Voice(id=v["language"], name=v["name"]) for v in raw)
        return VoiceListing(raw=raw, voices=voices)

    async def synthesize(self, request: SynthesisRequest) -> SynthesisResult:
        wpm = round(self.config.base_wpm * request.speaking_rate)
        audio = await self._run(
            ["--stdout", "-v", request.voice, "-s", str(wpm), "--stdin"],
            input=request.text.encode("utf-8"),
        )
        if not audio:
            raise MalformedResponseError(f"{self.config.binary} produced no audio", mode=self.mode)
        return SynthesisResult(audio=audio, content_type=AudioFormat.WAV.content_type)
