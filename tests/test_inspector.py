from datetime import UTC, datetime, timedelta

import pytest

from conftest import NOW, SERVICE_PROPERTIES, TIMER_PROPERTIES
from unitwatch.command import CommandOutcome
from unitwatch.errors import (
    CommandTimeoutError,
    ParseError,
    PermissionDeniedError,
    UnitNotFoundError,
)
from unitwatch.history import ExecutionRecord, HistoryReader
from unitwatch.systemd import ServiceState, UnitKind, UnitOperation
from unitwatch.systemd.inspector import UnitInspector


class StaticHistory(HistoryReader):
    """History reader answering every unit with the same records.
    """

    def __init__(self, records):
        self.records = records
        self.units = []

    async def list_executions(self, unit, limit=None):
        self.units.append(unit)
        return self.records[:limit]

    async def get_details(self, unit, execution_id):
        raise NotImplementedError


def show_status(
    active='active',
    sub='running',
    pid='1234',
    entered='Thu 2026-01-15 13:00:00 UTC',
    load='loaded',
) -> str:
    return (
        f'LoadState={load}\n'
        f'ActiveState={active}\n'
        f'SubState={sub}\n'
        f'MainPID={pid}\n'
        f'ActiveEnterTimestamp={entered}\n'
    )


TIMER_SHOW = '''\
Id=backup.timer
LoadState=loaded
UnitFileState=enabled
ActiveState=active
Unit=backup-job.service
NextElapseUSecRealtime=Fri 2026-01-16 03:00:00 UTC
LastTriggerUSec=Thu 2026-01-15 03:00:00 UTC
TimersCalendar={ OnCalendar=*-*-* 03:00:00 ; next_elapse=Fri 2026-01-16 03:00:00 UTC }
TimersMonotonic={ OnBootUSec=5min ; next_elapse=0 }
'''


@pytest.fixture
def inspector(executor, clock) -> UnitInspector:
    return UnitInspector(executor, clock=clock)


@pytest.mark.asyncio
async def test_list_units_filters_kind(executor, inspector):
    executor.expect_stdout(
        'systemctl',
        ['list-units', '--type=service', '--all', '--no-pager', '--plain', '--no-legend'],
        'nginx.service loaded active running Web server\n'
        'sys-kernel.mount loaded active mounted Kernel\n',
    )

    units = await inspector.list_units(UnitKind.SERVICE)

    assert [u.name for u in units] == ['nginx.service']
    assert units[0].description == 'Web server'


@pytest.mark.asyncio
async def test_get_status_running_with_uptime(executor, inspector):
    executor.expect_stdout(
        'systemctl',
        ['show', 'nginx.service', SERVICE_PROPERTIES],
        show_status(),
    )

    status = await inspector.get_status('nginx')

    assert status.name == 'nginx.service'
    assert status.status == ServiceState.RUNNING
    assert status.main_pid == 1234
    assert status.uptime_seconds == 3600


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ('active', 'sub', 'expected'),
    [
        ('failed', 'failed', ServiceState.FAILED),
        ('inactive', 'dead', ServiceState.STOPPED),
        ('active', 'exited', ServiceState.STOPPED),
        ('activating', 'start', ServiceState.STOPPED),
    ],
)
async def test_get_status_state_mapping(executor, inspector, active, sub, expected):
    executor.expect_stdout(
        'systemctl',
        ['show', 'app.service', SERVICE_PROPERTIES],
        show_status(active=active, sub=sub, pid='0'),
    )

    status = await inspector.get_status('app.service')

    assert status.status == expected
    assert status.main_pid is None
    if active != 'active':
        assert status.uptime_seconds is None


@pytest.mark.asyncio
async def test_get_status_unknown_unit(executor, inspector):
    executor.expect_stdout(
        'systemctl',
        ['show', 'ghost.service', SERVICE_PROPERTIES],
        show_status(load='not-found', active='inactive', sub='dead'),
    )

    with pytest.raises(UnitNotFoundError):
        await inspector.get_status('ghost')


@pytest.mark.asyncio
async def test_get_status_missing_property_is_parse_error(executor, inspector):
    executor.expect_stdout(
        'systemctl',
        ['show', 'odd.service', SERVICE_PROPERTIES],
        'LoadState=loaded\n',
    )

    with pytest.raises(ParseError):
        await inspector.get_status('odd')


@pytest.mark.asyncio
async def test_batch_reports_failures_inline(executor, inspector):
    executor.expect_stdout(
        'systemctl',
        ['show', 'nginx.service', SERVICE_PROPERTIES],
        show_status(),
    )
    executor.expect_stdout(
        'systemctl',
        ['show', 'ghost.service', SERVICE_PROPERTIES],
        show_status(load='not-found', active='inactive', sub='dead'),
    )

    statuses = await inspector.get_statuses(['nginx', 'ghost', 'bad;name'])

    assert [s.status for s in statuses] == [
        ServiceState.RUNNING,
        ServiceState.UNKNOWN,
        ServiceState.UNKNOWN,
    ]
    assert 'not found' in statuses[1].error
    assert 'Invalid unit name' in statuses[2].error
    assert len(executor.calls) == 2


@pytest.mark.asyncio
async def test_get_timer_info(executor, clock):
    last = ExecutionRecord.finished(
        'f' * 32,
        datetime(2026, 1, 15, 3, 0, 5, tzinfo=UTC),
        datetime(2026, 1, 15, 3, 1, 0, tzinfo=UTC),
        1,
    )
    history = StaticHistory([last])
    inspector = UnitInspector(executor, history=history, clock=clock)
    executor.expect_stdout('systemctl', ['show', 'backup.timer', TIMER_PROPERTIES], TIMER_SHOW)

    info = await inspector.get_timer_info('backup')

    assert info.name == 'backup.timer'
    assert info.service == 'backup-job.service'
    assert info.enabled
    assert info.schedule == ['*-*-* 03:00:00', 'OnBootSec=5min']
    assert info.schedule_human == 'Daily at 03:00, 5min after boot'
    assert info.next_run == datetime(2026, 1, 16, 3, 0, tzinfo=UTC)
    assert info.last_run == last.start_time
    assert info.last_result == 'failed'
    assert history.units == ['backup-job.service']


@pytest.mark.asyncio
async def test_get_timer_info_without_history(executor, inspector):
    show = TIMER_SHOW.replace('UnitFileState=enabled', 'UnitFileState=disabled')
    show = show.replace('Unit=backup-job.service\n', '')
    show = show.replace('NextElapseUSecRealtime=Fri 2026-01-16 03:00:00 UTC', 'NextElapseUSecRealtime=')
    executor.expect_stdout('systemctl', ['show', 'backup.timer', TIMER_PROPERTIES], show)

    info = await inspector.get_timer_info('backup.timer')

    assert not info.enabled
    assert info.service == 'backup.service'
    assert info.next_run is None
    assert info.last_run == datetime(2026, 1, 15, 3, 0, tzinfo=UTC)
    assert info.last_result is None


@pytest.mark.asyncio
async def test_get_logs(executor, inspector, journal_line):
    executor.expect_stdout(
        'journalctl',
        ['-u', 'nginx.service', '-n', '50', '--no-pager', '--output=json'],
        journal_line('a' * 32, NOW, 'Started nginx') + '\n',
    )

    entries = await inspector.get_logs('nginx', lines=50)

    assert [e.message for e in entries] == ['Started nginx']
    assert entries[0].timestamp == NOW


@pytest.mark.asyncio
async def test_get_logs_clamps_and_tolerates_empty_journal(executor, inspector):
    executor.expect_error(
        'journalctl',
        ['-u', 'nginx.service', '-n', '10000', '--no-pager', '--output=json'],
        1,
        '-- No entries --',
    )

    assert await inspector.get_logs('nginx', lines=999999) == []


@pytest.mark.asyncio
async def test_enable_starts_after_enabling(executor, inspector):
    executor.expect_stdout('systemctl', ['enable', 'x.timer'], '')
    executor.expect_stdout('systemctl', ['start', 'x.timer'], '')

    result = await inspector.enable('x.timer')

    assert executor.calls_for('systemctl') == [('enable', 'x.timer'), ('start', 'x.timer')]
    assert result.success
    assert result.operation == UnitOperation.ENABLE
    assert result.commands == [['enable', 'x.timer'], ['start', 'x.timer']]


@pytest.mark.asyncio
async def test_enable_stops_when_first_step_fails(executor, inspector):
    executor.expect_error(
        'systemctl',
        ['enable', 'x.timer'],
        1,
        'Failed to enable unit: Access denied',
    )

    with pytest.raises(PermissionDeniedError):
        await inspector.enable('x')

    assert executor.calls_for('systemctl') == [('enable', 'x.timer')]


@pytest.mark.asyncio
async def test_enable_already_enabled_is_success(executor, inspector):
    executor.expect(
        'systemctl',
        ['enable', 'x.timer'],
        CommandOutcome(exit_code=1, stderr='Unit x.timer is already enabled.'),
    )
    executor.expect_stdout('systemctl', ['start', 'x.timer'], '')

    result = await inspector.enable('x')

    assert result.success
    assert executor.calls_for('systemctl') == [('enable', 'x.timer'), ('start', 'x.timer')]


@pytest.mark.asyncio
async def test_disable_stops_then_disables(executor, inspector):
    executor.expect_stdout('systemctl', ['stop', 'x.timer'], '')
    executor.expect_stdout('systemctl', ['disable', 'x.timer'], '')

    result = await inspector.disable('x')

    assert executor.calls_for('systemctl') == [('stop', 'x.timer'), ('disable', 'x.timer')]
    assert result.message == 'x.timer stopped and disabled'


@pytest.mark.asyncio
async def test_disable_stops_when_stop_fails(executor, inspector):
    executor.expect_error('systemctl', ['stop', 'x.timer'], 5, 'Unit x.timer not loaded.')

    with pytest.raises(UnitNotFoundError):
        await inspector.disable('x')

    assert executor.calls_for('systemctl') == [('stop', 'x.timer')]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ('exit_code', 'stderr', 'error'),
    [
        (5, 'Failed to start ghost.service: Unit ghost.service not found.', UnitNotFoundError),
        (1, 'Failed to start app.service: Interactive authentication required.',
         PermissionDeniedError),
        (4, '', PermissionDeniedError),
        (5, '', UnitNotFoundError),
        (1, 'Job for app.service failed because the control process exited', ParseError),
    ],
)
async def test_control_error_mapping(executor, inspector, exit_code, stderr, error):
    executor.expect_error('systemctl', ['start', 'app.service'], exit_code, stderr)

    with pytest.raises(error) as info:
        await inspector.start('app')

    if error is ParseError:
        assert info.value.raw == stderr


@pytest.mark.asyncio
async def test_timeout_propagates(executor, inspector):
    executor.expect_timeout('systemctl', ['restart', 'app.service'])

    with pytest.raises(CommandTimeoutError):
        await inspector.restart('app')


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ('test_mode', 'operation', 'mode'),
    [(False, UnitOperation.RUN, 'production mode'), (True, UnitOperation.TEST, 'test mode')],
)
async def test_run_timer_starts_associated_service(
    executor,
    inspector,
    test_mode,
    operation,
    mode,
):
    executor.expect_stdout(
        'systemctl',
        ['show', 'backup.timer', '--property=LoadState,Unit'],
        'LoadState=loaded\nUnit=backup-job.service\n',
    )
    executor.expect_stdout('systemctl', ['start', '--no-block', 'backup-job.service'], '')

    result = await inspector.run_timer('backup', test_mode=test_mode)

    assert result.operation == operation
    assert result.message == f'Timer backup.timer triggered in {mode}'
    assert executor.calls_for('systemctl')[-1] == ('start', '--no-block', 'backup-job.service')


@pytest.mark.asyncio
async def test_run_timer_unknown_timer(executor, inspector):
    executor.expect_stdout(
        'systemctl',
        ['show', 'ghost.timer', '--property=LoadState,Unit'],
        'LoadState=not-found\nUnit=ghost.service\n',
    )

    with pytest.raises(UnitNotFoundError):
        await inspector.run_timer('ghost')

    assert len(executor.calls) == 1


@pytest.mark.asyncio
async def test_uptime_never_negative(executor):
    inspector = UnitInspector(executor, clock=lambda: NOW - timedelta(hours=5))
    executor.expect_stdout(
        'systemctl',
        ['show', 'nginx.service', SERVICE_PROPERTIES],
        show_status(),
    )

    status = await inspector.get_status('nginx')

    assert status.uptime_seconds == 0
