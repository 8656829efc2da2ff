import json
from datetime import timedelta

import pytest

from conftest import NOW, SERVICE_PROPERTIES
from unitwatch.config import AppSettings
from unitwatch.history import JournalHistoryReader
from unitwatch.plugin import (
    HttpRequest,
    ServicesPlugin,
    TimersPlugin,
)
from unitwatch.plugin.services_plugin import WARNING_HEADER
from unitwatch.services import ServiceMonitor, TimerService
from unitwatch.settings import (
    WATCHED_SERVICES_KEY,
    WATCHED_TIMERS_KEY,
    WatchedUnits,
)
from unitwatch.systemd.inspector import UnitInspector


RUNNING = (
    'LoadState=loaded\nActiveState=active\nSubState=running\n'
    'MainPID=42\nActiveEnterTimestamp=Thu 2026-01-15 13:00:00 UTC\n'
)
JOURNAL_ARGS = ['-u', 'backup.service', '--since', '7 days ago', '-o', 'json', '--no-pager']
ASSOCIATED = ['show', 'backup.timer', '--property=LoadState,Unit']


def request(method, path, body=None):
    if body is not None and not isinstance(body, str):
        body = json.dumps(body)
    return HttpRequest(method=method, path=path, body=body)


@pytest.fixture
def services_plugin(executor, store, clock) -> ServicesPlugin:
    inspector = UnitInspector(executor, clock=clock)
    return ServicesPlugin(ServiceMonitor(inspector, WatchedUnits.services(store)))


@pytest.fixture
def timers_plugin(executor, store, clock) -> TimersPlugin:
    history = JournalHistoryReader(executor, clock=clock)
    inspector = UnitInspector(executor, history=history, clock=clock)
    service = TimerService(inspector, history, WatchedUnits.timers(store))
    return TimersPlugin(service)


@pytest.mark.asyncio
async def test_plugins_built_from_settings_share_file_store(tmp_path, executor):
    settings = AppSettings(data_dir=tmp_path, log_dir=tmp_path)
    writer = TimersPlugin(TimerService.from_settings(settings, executor))
    reader = TimersPlugin(TimerService.from_settings(settings, executor))
    services = ServicesPlugin(ServiceMonitor.from_settings(settings, executor))

    saved = await writer.handle(
        request('POST', '/timers/settings', {'watched_timers': ['backup']}),
    )
    loaded = await reader.handle(request('GET', '/timers/settings'))
    services_info = await services.handle(request('GET', '/'))

    assert saved.status == 200
    assert loaded.json() == {WATCHED_TIMERS_KEY: ['backup.timer']}
    assert (tmp_path / 'systemd-timers.json').is_file()
    assert services_info.json()['plugin'] == 'systemd-services'
    assert executor.calls == []


@pytest.mark.asyncio
async def test_info_route(services_plugin, timers_plugin):
    response = await services_plugin.handle(request('GET', '/'))

    assert response.status == 200
    assert response.headers['Content-Type'] == 'application/json'
    assert response.json() == {
        'plugin': 'systemd-services',
        'version': '0.1.0',
        'description': 'Monitor and control systemd services',
    }
    timers_info = await timers_plugin.handle(request('GET', '/'))
    assert timers_info.json()['plugin'] == 'systemd-timers'


@pytest.mark.asyncio
async def test_unknown_route(services_plugin):
    for method, path in [('GET', '/nope'), ('POST', '/services/nginx/reload'),
                         ('DELETE', '/services')]:
        response = await services_plugin.handle(request(method, path))
        assert response.status == 404
        assert response.json() == {'success': False, 'error': 'Not found'}


@pytest.mark.asyncio
async def test_watched_services(services_plugin, executor, store):
    await store.set(WATCHED_SERVICES_KEY, '["nginx.service", "ghost"]')
    executor.expect_stdout('systemctl', ['show', 'nginx.service', SERVICE_PROPERTIES], RUNNING)
    executor.expect_error(
        'systemctl',
        ['show', 'ghost.service', SERVICE_PROPERTIES],
        1,
        'Unit ghost.service could not be found.',
    )

    response = await services_plugin.handle(request('GET', '/services'))

    assert response.status == 200
    body = response.json()
    assert body[0]['name'] == 'nginx.service'
    assert body[0]['status'] == 'running'
    assert body[0]['main_pid'] == 42
    assert body[0]['uptime_seconds'] == 3600
    assert body[1]['status'] == 'unknown'
    assert body[1]['error']


@pytest.mark.asyncio
async def test_malformed_settings_surface_warning(services_plugin, store):
    await store.set(WATCHED_SERVICES_KEY, '{oops')

    listing = await services_plugin.handle(request('GET', '/services'))
    settings = await services_plugin.handle(request('GET', '/services/settings'))

    assert listing.status == 200
    assert listing.json() == []
    assert WARNING_HEADER in listing.headers
    assert settings.json()['watched_services'] == []
    assert 'warning' in settings.json()


@pytest.mark.asyncio
async def test_available_services(services_plugin, executor):
    executor.expect_stdout(
        'systemctl',
        ['list-units', '--type=service', '--all', '--no-pager', '--plain', '--no-legend'],
        'nginx.service loaded active running Web server\n',
    )

    response = await services_plugin.handle(request('GET', '/services/available'))

    assert response.status == 200
    assert response.json()[0]['name'] == 'nginx.service'


@pytest.mark.asyncio
async def test_save_settings(services_plugin, store):
    response = await services_plugin.handle(request(
        'POST',
        '/services/settings',
        {'watched_services': ['nginx', 'sshd.service']},
    ))

    assert response.status == 200
    assert response.json() == {
        'success': True,
        'message': 'Settings saved',
        'watched_services': ['nginx.service', 'sshd.service'],
    }
    assert json.loads(await store.get(WATCHED_SERVICES_KEY)) == [
        'nginx.service',
        'sshd.service',
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    'body',
    [None, '{not json', {'watched_services': 'nginx'}, {'watched_services': ['a;b']}],
)
async def test_save_settings_bad_request(services_plugin, store, body):
    response = await services_plugin.handle(request('POST', '/services/settings', body))

    assert response.status == 400
    assert response.json()['success'] is False
    assert await store.get(WATCHED_SERVICES_KEY) is None


@pytest.mark.asyncio
async def test_control_service(services_plugin, executor):
    executor.expect_stdout('systemctl', ['restart', 'nginx.service'], '')

    response = await services_plugin.handle(request('POST', '/services/nginx/restart'))

    assert response.status == 200
    assert response.json() == {'success': True, 'message': 'nginx.service restarted'}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ('exit_code', 'stderr', 'status'),
    [
        (5, 'Failed to start ghost.service: Unit ghost.service not found.', 404),
        (4, 'Failed to start ghost.service: Access denied', 403),
        (1, 'Job failed. See "journalctl -xe" for details.', 400),
    ],
)
async def test_control_errors_map_to_status(services_plugin, executor, exit_code, stderr, status):
    executor.expect_error('systemctl', ['start', 'ghost.service'], exit_code, stderr)

    response = await services_plugin.handle(request('POST', '/services/ghost/start'))

    assert response.status == status
    assert response.json()['success'] is False


@pytest.mark.asyncio
async def test_control_timeout_is_gateway_timeout(services_plugin, executor):
    executor.expect_timeout('systemctl', ['stop', 'slow.service'])

    response = await services_plugin.handle(request('POST', '/services/slow/stop'))

    assert response.status == 504


@pytest.mark.asyncio
async def test_injection_is_rejected_before_execution(services_plugin, executor):
    response = await services_plugin.handle(request('POST', '/services/x%3Breboot/start'))

    assert response.status == 400
    assert executor.calls == []


@pytest.mark.asyncio
async def test_service_logs(services_plugin, executor, journal_line):
    executor.expect_stdout(
        'journalctl',
        ['-u', 'nginx.service', '-n', '5', '--no-pager', '--output=json'],
        journal_line('a' * 32, NOW, 'hello'),
    )

    response = await services_plugin.handle(request('GET', '/services/nginx/logs?lines=5'))

    assert response.status == 200
    assert response.json()[0]['message'] == 'hello'


@pytest.mark.asyncio
@pytest.mark.parametrize('query', ['lines=abc', 'lines=0', 'lines=-3'])
async def test_service_logs_bad_lines(services_plugin, executor, query):
    response = await services_plugin.handle(request('GET', f'/services/nginx/logs?{query}'))

    assert response.status == 400
    assert executor.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize(('action', 'mode'), [('run', 'production'), ('test', 'test')])
async def test_run_timer(timers_plugin, executor, action, mode):
    executor.expect_stdout('systemctl', ASSOCIATED, 'LoadState=loaded\nUnit=backup.service\n')
    executor.expect_stdout('systemctl', ['start', '--no-block', 'backup.service'], '')

    response = await timers_plugin.handle(request('POST', f'/timers/backup/{action}'))

    assert response.status == 200
    assert response.json() == {
        'success': True,
        'message': f'Timer backup.timer triggered in {mode} mode',
        'mode': mode,
    }


@pytest.mark.asyncio
async def test_enable_and_disable_timer(timers_plugin, executor):
    for args in (['enable', 'backup.timer'], ['start', 'backup.timer'],
                 ['stop', 'backup.timer'], ['disable', 'backup.timer']):
        executor.expect_stdout('systemctl', args, '')

    enabled = await timers_plugin.handle(request('POST', '/timers/backup/enable'))
    disabled = await timers_plugin.handle(request('POST', '/timers/backup.timer/disable'))

    assert enabled.json()['message'] == 'backup.timer enabled and started'
    assert disabled.json()['message'] == 'backup.timer stopped and disabled'
    assert executor.calls_for('systemctl') == [
        ('enable', 'backup.timer'),
        ('start', 'backup.timer'),
        ('stop', 'backup.timer'),
        ('disable', 'backup.timer'),
    ]


@pytest.mark.asyncio
async def test_timer_history(timers_plugin, executor, journal_line):
    executor.expect_stdout('systemctl', ASSOCIATED, 'LoadState=loaded\nUnit=backup.service\n')
    lines = []
    for number in range(3):
        start = NOW - timedelta(hours=3 - number)
        invocation_id = f'{number:032x}'
        lines.append(journal_line(invocation_id, start, 'Starting'))
        lines.append(journal_line(
            invocation_id,
            start + timedelta(seconds=5),
            'Deactivated successfully.',
            MESSAGE_ID='7ad2d189f7e94e70a38c781354912448',
        ))
    executor.expect_stdout('journalctl', JOURNAL_ARGS, '\n'.join(lines))

    response = await timers_plugin.handle(request('GET', '/timers/backup/history?limit=2'))

    assert response.status == 200
    body = response.json()
    assert [r['invocation_id'] for r in body] == [f'{2:032x}', f'{1:032x}']
    assert body[0]['status'] == 'success'
    assert body[0]['duration_secs'] == 5

    details = await timers_plugin.handle(
        request('GET', f'/timers/backup/history/{2:032x}'),
    )
    assert details.status == 200
    assert details.json()['output'] == ['Starting', 'Deactivated successfully.']

    missing = await timers_plugin.handle(request('GET', '/timers/backup/history/nope'))
    assert missing.status == 404


@pytest.mark.asyncio
async def test_timer_settings_round_trip(timers_plugin, store):
    saved = await timers_plugin.handle(request(
        'POST',
        '/timers/settings',
        {'watched_timers': ['backup', 'cleanup.timer', 'backup.timer']},
    ))
    loaded = await timers_plugin.handle(request('GET', '/timers/settings'))

    assert saved.json()['watched_timers'] == ['backup.timer', 'cleanup.timer']
    assert loaded.json() == {'watched_timers': ['backup.timer', 'cleanup.timer']}
    assert json.loads(await store.get(WATCHED_TIMERS_KEY)) == ['backup.timer', 'cleanup.timer']


@pytest.mark.asyncio
async def test_watched_timers_with_unknown_entry(timers_plugin, store):
    await store.set(WATCHED_TIMERS_KEY, '["bad name"]')

    response = await timers_plugin.handle(request('GET', '/timers'))

    assert response.status == 200
    (timer,) = response.json()
    assert timer['name'] == 'bad name'
    assert 'Invalid unit name' in timer['error']
