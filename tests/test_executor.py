import sys

import pytest

from unitwatch.command import (
    CommandOutcome,
    RecordingCommandExecutor,
    SystemCommandExecutor,
    format_command,
)
from unitwatch.errors import CommandTimeoutError, SpawnError


@pytest.fixture
def python_executor() -> SystemCommandExecutor:
    return SystemCommandExecutor(default_timeout=5, allowed_programs=[sys.executable])


@pytest.mark.asyncio
async def test_captures_stdout_and_exit_code(python_executor):
    outcome = await python_executor.execute(sys.executable, ['-c', 'print("hello")'])

    assert outcome.exit_code == 0
    assert outcome.success
    assert outcome.stdout.strip() == 'hello'
    assert outcome.duration >= 0


@pytest.mark.asyncio
async def test_captures_stderr_and_nonzero_exit(python_executor):
    script = 'import sys; sys.stderr.write("boom"); sys.exit(3)'
    outcome = await python_executor.execute(sys.executable, ['-c', script])

    assert outcome.exit_code == 3
    assert not outcome.success
    assert outcome.stderr == 'boom'


@pytest.mark.asyncio
async def test_arguments_are_not_shell_interpreted(python_executor):
    payload = '$(whoami); echo pwned | cat && `id`'
    outcome = await python_executor.execute(
        sys.executable,
        ['-c', 'import sys; print(sys.argv[1])', payload],
    )

    assert outcome.stdout.rstrip('\n') == payload


@pytest.mark.asyncio
async def test_timeout_kills_process(python_executor):
    with pytest.raises(CommandTimeoutError) as info:
        await python_executor.execute(
            sys.executable,
            ['-c', 'import time; time.sleep(30)'],
            timeout=0.2,
        )

    assert info.value.timeout == 0.2
    assert info.value.status_code == 504


@pytest.mark.asyncio
async def test_missing_program_is_spawn_error():
    executor = SystemCommandExecutor(allowed_programs=['/nonexistent/unitwatch-test'])

    with pytest.raises(SpawnError):
        await executor.execute('/nonexistent/unitwatch-test', [])


@pytest.mark.asyncio
async def test_program_outside_allow_list_is_refused():
    executor = SystemCommandExecutor()

    with pytest.raises(ValueError, match='not allowed'):
        await executor.execute('rm', ['-rf', '/'])


def test_format_command_quotes_arguments():
    assert format_command('systemctl', ['show', 'a b']) == "systemctl show 'a b'"


@pytest.mark.asyncio
async def test_recording_executor_replays_and_records():
    executor = RecordingCommandExecutor()
    executor.expect_stdout('systemctl', ['show', 'x.service'], 'ActiveState=active\n')
    executor.expect_error('journalctl', ['-u', 'x.service'], 1, 'No entries')

    shown = await executor.execute('systemctl', ['show', 'x.service'])
    failed = await executor.execute('journalctl', ['-u', 'x.service'])

    assert shown == CommandOutcome(exit_code=0, stdout='ActiveState=active\n')
    assert failed.exit_code == 1
    assert failed.stderr == 'No entries'
    assert executor.calls == [
        ('systemctl', ('show', 'x.service')),
        ('journalctl', ('-u', 'x.service')),
    ]
    assert executor.calls_for('systemctl') == [('show', 'x.service')]


@pytest.mark.asyncio
async def test_recording_executor_unprogrammed_call_fails():
    executor = RecordingCommandExecutor()

    with pytest.raises(SpawnError):
        await executor.execute('systemctl', ['start', 'x.service'])

    assert executor.calls == [('systemctl', ('start', 'x.service'))]


@pytest.mark.asyncio
async def test_recording_executor_timeout():
    executor = RecordingCommandExecutor().expect_timeout(
        'systemctl',
        ['start', 'slow.service'],
        timeout=3,
    )

    with pytest.raises(CommandTimeoutError):
        await executor.execute('systemctl', ['start', 'slow.service'])
