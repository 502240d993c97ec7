import asyncio
import json
import logging
import re
from typing import Any, Dict, List, NamedTuple

from medialinks.config.settings import YouTubeConfig
from medialinks.core.errors import ParseFailure, UpstreamBlocked, UpstreamUnreachable

logger = logging.getLogger(__name__)

WATCH_URL = "https://www.youtube.com/watch?v={video_id}"

# stderr fragments that mean YouTube refused to serve this host
BLOCKED_MARKERS = (
    "HTTP Error 410",
    "HTTP Error 429",
    "Sign in to confirm you",
    "confirm you're not a bot",
)

ERROR_LINE_RE = re.compile(r"^ERROR:\s*(?:\[[^\]]+\]\s*)?(?:[\w-]+:\s*)?(.+)$", re.MULTILINE)


class CompletedProcess(NamedTuple):
    """Subprocess result"""
    returncode: int
    stdout: bytes
    stderr: bytes


class SubprocessExecutor:
    """Execute subprocess with consistent error handling"""

    @staticmethod
    async def run(cmd: List[str], timeout: float) -> CompletedProcess:
        """
        Run subprocess with timeout and proper cleanup.
        The process is killed whenever the run ends without it exiting.
        """
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            stdin=asyncio.subprocess.DEVNULL
        )

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
            return CompletedProcess(returncode=process.returncode, stdout=stdout, stderr=stderr)
        finally:
            # timeout, error or cancellation (client went away): never leave the child running
            if process.returncode is None:
                process.kill()
                await process.wait()


class YTDLPCommandBuilder:
    """Build yt-dlp commands"""

    @staticmethod
    def build_info_command(url: str, youtube_config: YouTubeConfig) -> List[str]:
        """Metadata-only run; --retries 0 keeps it to a single upstream attempt"""
        cmd = [
            youtube_config.ytdlp_path,
            '--dump-json',
            '--no-playlist',
            '--no-warnings',
            '--socket-timeout', str(youtube_config.socket_timeout),
            '--retries', '0',
        ]

        if youtube_config.js_runtime:
            cmd.extend(['--js-runtimes', youtube_config.js_runtime])

        cmd.append(url)
        return cmd


def summarize_stderr(stderr: str) -> str:
    """Last yt-dlp ERROR line without its extractor prefix"""
    matches = ERROR_LINE_RE.findall(stderr)
    if matches:
        return matches[-1].strip()[:200]
    return stderr.strip().splitlines()[-1][:200] if stderr.strip() else ""


class YtDlpSource:
    """YouTube upstream backed by the yt-dlp executable"""

    def __init__(self, youtube_config: YouTubeConfig):
        self.config = youtube_config

    async def fetch(self, video_id: str) -> Dict[str, Any]:
        """Return yt-dlp's info dict for one video"""
        cmd = YTDLPCommandBuilder.build_info_command(WATCH_URL.format(video_id=video_id), self.config)

        try:
            result = await SubprocessExecutor.run(cmd, timeout=self.config.timeout_seconds)
        except asyncio.TimeoutError:
            raise UpstreamUnreachable(
                key="error.upstream_timeout",
                upstream="YouTube",
                seconds=self.config.timeout_seconds,
            )
        except FileNotFoundError:
            logger.error(f"yt-dlp executable not found: {self.config.ytdlp_path}")
            raise UpstreamUnreachable(key="error.ytdlp_missing")

        if result.returncode != 0:
            stderr = result.stderr.decode(errors="ignore")
            logger.warning(f"yt-dlp exited with {result.returncode} for {video_id}")
            if any(marker in stderr for marker in BLOCKED_MARKERS):
                raise UpstreamBlocked(key="error.youtube_blocked")
            raise UpstreamUnreachable(summarize_stderr(stderr) or None, upstream="YouTube")

        try:
            info = json.loads(result.stdout.decode(errors="ignore"))
        except json.JSONDecodeError:
            raise ParseFailure(upstream="yt-dlp")

        if not isinstance(info, dict):
            raise ParseFailure(upstream="yt-dlp")
        return info
