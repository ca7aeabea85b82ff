"""
Runs an external engine as a child process and captures its output.
"""
import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 64 * 1024


@dataclass
class StageResult:
    """Outcome of one engine run; success is true iff the exit code is 0."""
    success: bool
    exit_code: int
    stdout: str
    stderr: str
    error: Optional[str] = None


def build_stage_env(
    base_env: Dict[str, str],
    app_name: str,
    extra: Optional[Dict[str, str]] = None,
) -> Dict[str, str]:
    """Child environment: the configured base plus NAME_APP and any extras."""
    env = dict(base_env)
    env['NAME_APP'] = app_name
    if extra:
        env.update(extra)
    return env


class StageDriver:
    """
    Spawns engines with stdin inherited and stdout/stderr piped.

    Output is logged line by line as it arrives and also accumulated for the
    caller to parse. Streams are read in chunks so a line of any length is
    kept whole. ``run`` never raises: start failures come back with exit
    code -1. There is no retry and no timeout.
    """

    def _emit(self, raw: bytes, sink: List[str], level: int, label: str):
        text = raw.decode('utf-8', errors='replace')
        sink.append(text)
        logger.log(level, '[CHILD %s] %s', label, text.rstrip())

    async def _pump(self, stream: asyncio.StreamReader, sink: List[str], level: int, label: str):
        pending = b''
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            pending += chunk
            *lines, pending = pending.split(b'\n')
            for line in lines:
                self._emit(line + b'\n', sink, level, label)
        if pending:
            self._emit(pending, sink, level, label)

    async def run(
        self,
        command: List[str],
        args: List[str],
        env: Optional[Dict[str, str]] = None,
        cwd: Optional[Path] = None,
    ) -> StageResult:
        argv = list(command) + list(args)
        logger.info('Spawning child process: %s', ' '.join(argv))

        stdout: List[str] = []
        stderr: List[str] = []

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
                cwd=str(cwd) if cwd else None,
            )
        except (OSError, ValueError) as e:
            logger.error('Child process error: %s', e)
            return StageResult(
                success=False,
                exit_code=-1,
                stdout='',
                stderr='',
                error=str(e),
            )

        pumps = [
            asyncio.ensure_future(self._pump(process.stdout, stdout, logging.INFO, 'STDOUT')),
            asyncio.ensure_future(self._pump(process.stderr, stderr, logging.WARNING, 'STDERR')),
        ]
        try:
            await asyncio.gather(*pumps)
        except (OSError, ValueError) as e:
            logger.error('Child process error: %s', e)
            for pump in pumps:
                pump.cancel()
            await asyncio.gather(*pumps, return_exceptions=True)
            if process.returncode is None:
                process.kill()
            await process.wait()
            return StageResult(
                success=False,
                exit_code=-1,
                stdout=''.join(stdout),
                stderr=''.join(stderr),
                error=str(e),
            )

        exit_code = await process.wait()
        if exit_code == 0:
            logger.info('Child process completed successfully with exit code: %s', exit_code)
            return StageResult(
                success=True,
                exit_code=exit_code,
                stdout=''.join(stdout),
                stderr=''.join(stderr),
            )

        logger.error('Child process failed with exit code: %s', exit_code)
        return StageResult(
            success=False,
            exit_code=exit_code,
            stdout=''.join(stdout),
            stderr=''.join(stderr),
            error=f'Process exited with code {exit_code}',
        )
