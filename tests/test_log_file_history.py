import io
from datetime import UTC, datetime, timedelta

import pytest

from unitwatch.errors import ExecutionNotFoundError
from unitwatch.history import (
    ExecutionStatus,
    LogFileHistoryReader,
    TriggerType,
)
from unitwatch.history.log_files import read_bounded_lines


NOW = datetime(2026, 1, 15, 13, 10, 0, tzinfo=UTC)


@pytest.fixture
def unit_dir(tmp_path):
    directory = tmp_path / 'backup'
    directory.mkdir()
    return directory


@pytest.fixture
def reader(tmp_path) -> LogFileHistoryReader:
    return LogFileHistoryReader(log_dir=tmp_path, clock=lambda: NOW)


def write_log(directory, token, text):
    path = directory / f'{token}.log'
    path.write_text(text, encoding='utf-8')
    return path


@pytest.mark.asyncio
async def test_start_without_end_is_running(unit_dir, reader):
    write_log(
        unit_dir,
        '2026-01-15_140000',
        '[START] 2026-01-15T14:00:00+01:00 backup.service\nworking...\n',
    )

    (record,) = await reader.list_executions('backup')

    assert record.invocation_id == '2026-01-15_140000'
    assert record.status == ExecutionStatus.RUNNING
    assert record.start_time == datetime(2026, 1, 15, 13, 0, tzinfo=UTC)
    assert record.end_time is None
    assert record.exit_code is None
    assert record.duration_secs is None
    assert record.elapsed_secs == 600


@pytest.mark.asyncio
async def test_end_line_completes_record(unit_dir, reader):
    write_log(
        unit_dir,
        '2026-01-15_140000',
        '[START] 2026-01-15T14:00:00+01:00 backup.service\n'
        'line one\n'
        'line two\n'
        '[END] 2026-01-15T14:00:45+01:00 exit_code=0 duration=45s\n',
    )

    (record,) = await reader.list_executions('backup.service')

    assert record.status == ExecutionStatus.SUCCESS
    assert record.exit_code == 0
    assert record.duration_secs == 45
    assert record.end_time == datetime(2026, 1, 15, 13, 0, 45, tzinfo=UTC)
    assert record.trigger == TriggerType.SCHEDULED


@pytest.mark.asyncio
async def test_failed_manual_run(unit_dir, reader):
    write_log(
        unit_dir,
        '2026-01-15_120000',
        '[START] 2026-01-15T12:00:00+00:00 backup.service trigger=manual\n'
        'error: disk full\n'
        '[END] exit_code=3 duration=65s\n',
    )

    (record,) = await reader.list_executions('backup')

    assert record.status == ExecutionStatus.FAILED
    assert record.exit_code == 3
    assert record.trigger == TriggerType.MANUAL
    assert record.duration_secs == 65
    assert record.end_time == datetime(2026, 1, 15, 12, 1, 5, tzinfo=UTC)


@pytest.mark.asyncio
async def test_end_without_exit_code_stays_running(unit_dir, reader):
    write_log(
        unit_dir,
        '2026-01-15_130500',
        '[START] 2026-01-15T13:05:00+00:00 backup.service\n[END] duration=5s\n',
    )

    (record,) = await reader.list_executions('backup')

    assert record.status == ExecutionStatus.RUNNING
    assert record.elapsed_secs == 300


@pytest.mark.asyncio
async def test_newest_first_with_limit(unit_dir, reader):
    start = datetime(2026, 1, 1, 3, 0, tzinfo=UTC)
    for day in range(20):
        when = start + timedelta(days=day)
        write_log(
            unit_dir,
            when.strftime('%Y-%m-%d_%H%M%S'),
            f'[START] {when.isoformat()} backup.service\n'
            f'[END] {(when + timedelta(seconds=10)).isoformat()} exit_code=0 duration=10s\n',
        )

    records = await reader.list_executions('backup', limit=5)

    assert [r.invocation_id for r in records] == [
        '2026-01-20_030000',
        '2026-01-19_030000',
        '2026-01-18_030000',
        '2026-01-17_030000',
        '2026-01-16_030000',
    ]


@pytest.mark.asyncio
async def test_ignores_latest_alias_and_foreign_files(unit_dir, reader):
    text = '[START] 2026-01-15T12:00:00+00:00 backup.service\n[END] exit_code=0 duration=1s\n'
    write_log(unit_dir, '2026-01-15_120000', text)
    (unit_dir / 'latest.log').write_text(text, encoding='utf-8')
    (unit_dir / 'notes.txt').write_text('hello', encoding='utf-8')
    (unit_dir / 'yesterday.log').write_text(text, encoding='utf-8')

    records = await reader.list_executions('backup')

    assert [r.invocation_id for r in records] == ['2026-01-15_120000']


@pytest.mark.asyncio
async def test_missing_directory_is_empty(reader):
    assert await reader.list_executions('nothing-here') == []


@pytest.mark.asyncio
async def test_details_output_between_markers(unit_dir, reader):
    write_log(
        unit_dir,
        '2026-01-15_140000',
        '[START] 2026-01-15T14:00:00+01:00 backup.service\n'
        'line one\n'
        '\n'
        'line two\n'
        '[END] 2026-01-15T14:00:45+01:00 exit_code=0 duration=45s\n',
    )

    details = await reader.get_details('backup', '2026-01-15_140000')

    assert details.output == ['line one', '', 'line two']
    assert details.exit_code == 0
    assert not details.truncated


@pytest.mark.asyncio
async def test_details_of_running_execution(unit_dir, reader):
    write_log(
        unit_dir,
        '2026-01-15_140000',
        '[START] 2026-01-15T14:00:00+01:00 backup.service\nstep 1\nstep 2\n',
    )

    details = await reader.get_details('backup', '2026-01-15_140000')

    assert details.status == ExecutionStatus.RUNNING
    assert details.output == ['step 1', 'step 2']


@pytest.mark.asyncio
async def test_details_escape_binary_output(unit_dir, reader):
    path = unit_dir / '2026-01-15_140000.log'
    path.write_bytes(
        b'[START] 2026-01-15T14:00:00+01:00 backup.service\n'
        b'bad \xff\xfe bytes\x07\n'
        b'[END] 2026-01-15T14:00:01+01:00 exit_code=0 duration=1s\n',
    )

    details = await reader.get_details('backup', '2026-01-15_140000')

    assert details.output == ['bad \\xff\\xfe bytes']


@pytest.mark.asyncio
async def test_details_output_is_capped(tmp_path, unit_dir):
    reader = LogFileHistoryReader(log_dir=tmp_path, max_output_bytes=1024, clock=lambda: NOW)
    body = ''.join(f'{n:04d} {"y" * 45}\n' for n in range(100))
    write_log(
        unit_dir,
        '2026-01-15_140000',
        '[START] 2026-01-15T14:00:00+01:00 backup.service\n'
        f'{body}'
        '[END] 2026-01-15T14:05:00+01:00 exit_code=0 duration=5min\n',
    )

    details = await reader.get_details('backup', '2026-01-15_140000')

    assert details.truncated
    assert details.output[-1].startswith('0099 ')
    assert details.output[0] != '0000 ' + 'y' * 45
    assert details.duration_secs == 300


@pytest.mark.asyncio
async def test_details_keep_tail_of_unterminated_huge_line(tmp_path, unit_dir):
    reader = LogFileHistoryReader(log_dir=tmp_path, max_output_bytes=1024, clock=lambda: NOW)
    path = unit_dir / '2026-01-15_140000.log'
    path.write_bytes(
        b'[START] 2026-01-15T14:00:00+01:00 backup.service\n'
        + b'a' * 50_000 + b'z\n'
        + b'[END] 2026-01-15T14:00:10+01:00 exit_code=0 duration=10s\n',
    )

    details = await reader.get_details('backup', '2026-01-15_140000')

    assert details.truncated
    assert len(details.output) == 1
    assert details.output[0].endswith('az')
    assert len(details.output[0]) < 1024
    assert details.status == ExecutionStatus.SUCCESS


class RecordingReads(io.BytesIO):
    def __init__(self, data: bytes) -> None:
        super().__init__(data)
        self.sizes: list[int] = []

    def readline(self, size=-1):
        self.sizes.append(size)
        return super().readline(size)


def test_read_bounded_lines_never_reads_unbounded():
    handle = RecordingReads(b'short\n' + b'x' * 100 + b'\nno newline')

    lines = list(read_bounded_lines(handle, 16))

    assert lines == [b'short\n', b'x' * 15 + b'\n', b'no newline']
    assert set(handle.sizes) == {16}


@pytest.mark.asyncio
@pytest.mark.parametrize('execution_id', ['2026-01-01_000000', 'latest', '../../etc/passwd'])
async def test_details_not_found(unit_dir, reader, execution_id):
    with pytest.raises(ExecutionNotFoundError):
        await reader.get_details('backup', execution_id)
