"""
Stage process driver against real child processes.
"""
import os
import sys

import pytest

from app.services.stage_driver import StageDriver, build_stage_env


def python(code: str):
    return [sys.executable, '-c', code]


class TestStageDriver:

    @pytest.mark.asyncio
    async def test_success_captures_stdout(self):
        result = await StageDriver().run(python('print("line one"); print("line two")'), [])

        assert result.success is True
        assert result.exit_code == 0
        assert result.stdout.splitlines() == ['line one', 'line two']
        assert result.error is None

    @pytest.mark.asyncio
    async def test_arguments_passed(self):
        result = await StageDriver().run(
            python('import sys; print(sys.argv[1:])'),
            ['--file_name', 'elevenlabs_job1.csv'],
        )

        assert "['--file_name', 'elevenlabs_job1.csv']" in result.stdout

    @pytest.mark.asyncio
    async def test_line_longer_than_stream_buffer(self):
        """Test a line past the 64 KiB reader limit is kept whole and the exit code holds."""
        result = await StageDriver().run(
            python("print('x' * 70000); print('Audio file created successfully: /gen/a.mp3')"),
            [],
        )

        assert result.success is True
        assert result.exit_code == 0
        lines = result.stdout.splitlines()
        assert lines[0] == 'x' * 70000
        assert lines[1] == 'Audio file created successfully: /gen/a.mp3'

    @pytest.mark.asyncio
    async def test_output_without_trailing_newline(self):
        result = await StageDriver().run(python('import sys; sys.stdout.write("partial")'), [])

        assert result.stdout == 'partial'

    @pytest.mark.asyncio
    async def test_non_zero_exit(self):
        result = await StageDriver().run(
            python('import sys; sys.stderr.write("bad input\\n"); sys.exit(3)'),
            [],
        )

        assert result.success is False
        assert result.exit_code == 3
        assert 'bad input' in result.stderr
        assert result.error == 'Process exited with code 3'

    @pytest.mark.asyncio
    async def test_missing_executable_does_not_raise(self, tmp_path):
        result = await StageDriver().run([str(tmp_path / 'no-such-engine')], ['--file_name', 'x.csv'])

        assert result.success is False
        assert result.exit_code == -1
        assert result.error

    @pytest.mark.asyncio
    async def test_environment_and_cwd(self, tmp_path):
        env = build_stage_env({'PATH': os.environ.get('PATH', '')}, 'RequesterElevenLabs01', {'EXTRA': 'yes'})

        result = await StageDriver().run(
            python('import os; print(os.environ["NAME_APP"], os.environ["EXTRA"], os.getcwd())'),
            [],
            env=env,
            cwd=tmp_path,
        )

        name_app, extra, cwd = result.stdout.split()
        assert name_app == 'RequesterElevenLabs01'
        assert extra == 'yes'
        assert os.path.realpath(cwd) == os.path.realpath(tmp_path)


class TestBuildStageEnv:

    def test_base_env_not_mutated(self):
        base = {'PATH': '/bin'}

        env = build_stage_env(base, 'Concat01')

        assert env == {'PATH': '/bin', 'NAME_APP': 'Concat01'}
        assert base == {'PATH': '/bin'}
