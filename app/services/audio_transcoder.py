"""
On-the-fly audio transcoding to a single browser-playable format.

WhatsApp voice notes arrive as OGG/Opus (and occasionally AMR or AAC), which
not every player handles. Anything audio that is not already MP3 is re-encoded
with one ffmpeg process per call. Requires ffmpeg on the host / image.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
from pathlib import Path

from app.exceptions import TranscodeError

logger = logging.getLogger(__name__)

CANONICAL_AUDIO_TYPE = "audio/mpeg"
TARGET_CHANNELS = 1
TARGET_SAMPLE_RATE = 44100
TARGET_BITRATE = "64k"
SCRATCH_PREFIX = "media-transcode-"


def needs_transcoding(content_type: str) -> bool:
    """True for audio content that is not already the canonical encoding."""
    primary = (content_type or "").split(";", 1)[0].strip().lower()
    return primary.startswith("audio/") and primary != CANONICAL_AUDIO_TYPE


def _read_output(path: Path) -> bytes:
    return path.read_bytes() if path.exists() else b""


class AudioTranscoder:
    """Re-encode audio to mono MP3 with ffmpeg."""

    def __init__(self, ffmpeg_path: str = "ffmpeg", timeout: float = 30.0) -> None:
        self.ffmpeg_path = ffmpeg_path
        self.timeout = timeout

    def build_command(self, src_path: Path, dst_path: Path) -> list[str]:
        return [
            self.ffmpeg_path,
            "-hide_banner",
            "-nostdin",
            "-loglevel",
            "error",
            "-y",
            "-i",
            str(src_path),
            "-vn",
            "-ac",
            str(TARGET_CHANNELS),
            "-ar",
            str(TARGET_SAMPLE_RATE),
            "-c:a",
            "libmp3lame",
            "-b:a",
            TARGET_BITRATE,
            str(dst_path),
        ]

    async def transcode(self, content: bytes) -> bytes:
        """
        Return ``content`` re-encoded as CANONICAL_AUDIO_TYPE.

        The scratch directory is unique per call and removed on every exit
        path. File I/O runs in worker threads to keep the event loop free.
        Raises TranscodeError if ffmpeg is missing, fails or times out.
        """
        if not content:
            raise TranscodeError("No audio content to transcode")

        scratch = Path(
            await asyncio.to_thread(tempfile.mkdtemp, prefix=SCRATCH_PREFIX)
        )
        try:
            src_path = scratch / "source"
            dst_path = scratch / "output.mp3"
            await asyncio.to_thread(src_path.write_bytes, content)
            await self._run(self.build_command(src_path, dst_path))
            output = await asyncio.to_thread(_read_output, dst_path)
        finally:
            await asyncio.to_thread(shutil.rmtree, scratch, ignore_errors=True)

        if not output:
            raise TranscodeError("ffmpeg produced no output")
        return output

    async def _run(self, cmd: list[str]) -> None:
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise TranscodeError(f"Could not start ffmpeg: {e}") from e

        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise TranscodeError(
                f"ffmpeg timed out after {self.timeout:g}s"
            ) from e

        if proc.returncode != 0:
            err = (stderr or b"").decode("utf-8", "ignore").strip()
            raise TranscodeError(err or f"ffmpeg exited with {proc.returncode}")
