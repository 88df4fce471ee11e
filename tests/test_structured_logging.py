import io
import json
import re

import pytest

from issuelink import logging as issuelink_logging
from issuelink.build import BuildRecord
from issuelink.logging import BuildConsole, StructuredLogger, configure_logging
from issuelink.models import ChangeEntry
from issuelink.resolver import record_build_issues


def _json_lines(out: str) -> list[dict]:
    entries = []
    for line in out.split('\n'):
        if line.strip().startswith('{'):
            try:
                entries.append(json.loads(line.strip()))
            except json.JSONDecodeError:
                pass
    return entries


def test_structured_logger_json_format(capsys):
    """Test that structured logger produces JSON output when configured."""
    logger = StructuredLogger(name='test', json_logging=True, level='INFO')
    logger.log_operation('test_operation', param1='value1', param2=42)

    captured = capsys.readouterr()
    log_lines = [line for line in captured.out.strip().split('\n') if line]

    assert len(log_lines) == 1
    log_data = json.loads(log_lines[0])

    assert log_data['level'] == 'INFO'
    assert log_data['operation'] == 'test_operation'
    assert log_data['param1'] == 'value1'
    assert log_data['param2'] == 42
    assert 'timestamp' in log_data


def test_structured_logger_regular_format(capsys):
    """Test that structured logger produces regular text output when JSON disabled."""
    logger = StructuredLogger(name='test', json_logging=False, level='INFO')
    logger.log_operation('test_operation', param1='value1')

    captured = capsys.readouterr()
    assert 'Operation: test_operation' in captured.out
    assert 'INFO' in captured.out


def test_structured_logger_issue_actions(capsys):
    """Test structured logging of issue actions."""
    logger = StructuredLogger(name='test', json_logging=True, level='INFO')
    logger.log_issue_action('commented', 'PROJ-1', build='Foo #12', field_id='customfield_1')

    log_data = json.loads(capsys.readouterr().out.strip())

    assert log_data['operation'] == 'issue_commented'
    assert log_data['issue_id'] == 'PROJ-1'
    assert log_data['build'] == 'Foo #12'
    assert log_data['field_id'] == 'customfield_1'


def test_structured_logger_performance_timing(capsys):
    """Test performance timing logging."""
    logger = StructuredLogger(name='test', json_logging=True, level='INFO')
    logger.log_performance('resolve_issues', 1234.56, candidates=10)

    log_data = json.loads(capsys.readouterr().out.strip())

    assert log_data['operation'] == 'resolve_issues'
    assert log_data['duration_ms'] == 1234.56
    assert log_data['candidates'] == 10


def test_timed_operation_context_manager(capsys):
    """Test timed operation context manager."""
    logger = StructuredLogger(name='test', json_logging=True, level='INFO')

    with logger.timed_operation('submit_comments', issues=2):
        pass

    log_lines = [line for line in capsys.readouterr().out.strip().split('\n') if line]
    assert len(log_lines) >= 2

    start_log = json.loads(log_lines[0])
    assert start_log['operation'] == 'submit_comments_start'
    assert start_log['issues'] == 2

    perf_log = json.loads(log_lines[1])
    assert perf_log['operation'] == 'submit_comments'
    assert 'duration_ms' in perf_log


def test_timed_operation_logs_failures(capsys):
    logger = StructuredLogger(name='test', json_logging=True, level='INFO')

    with pytest.raises(RuntimeError):
        with logger.timed_operation('resolve_issues'):
            raise RuntimeError('tracker went away')

    entries = _json_lines(capsys.readouterr().out)
    assert entries[-1]['level'] == 'ERROR'
    assert entries[-1]['error'] == 'tracker went away'


def test_resolution_emits_json_logs(capsys, fake_session, make_site):
    configure_logging(json_logging=True, level='DEBUG')
    session = fake_session(['PROJ-1'])
    build = BuildRecord(display_name='Foo #12', change_set=[ChangeEntry('PROJ-1 fix')])
    console = BuildConsole(build='Foo #12')

    assert record_build_issues(build, make_site(session, issue_pattern=re.compile(r'([A-Z]+-\d+)')), console)

    entries = _json_lines(capsys.readouterr().out)
    operations = [entry.get('operation') for entry in entries]
    assert 'resolve_issues_start' in operations
    assert 'resolve_issues' in operations
    resolved = [entry for entry in entries if entry.get('operation') == 'issue_resolved']
    assert resolved and resolved[0]['issue_id'] == 'PROJ-1'


def test_build_console_writes_stream_and_keeps_lines():
    stream = io.StringIO()
    console = BuildConsole(stream=stream)
    console.println('Updating PROJ-1')
    console.println('Updating PROJ-2')

    assert console.lines == ['Updating PROJ-1', 'Updating PROJ-2']
    assert stream.getvalue() == 'Updating PROJ-1\nUpdating PROJ-2\n'
    assert console.text == 'Updating PROJ-1\nUpdating PROJ-2'


def test_configure_logging():
    """Test global logging configuration."""
    logger1 = configure_logging(json_logging=True, level='DEBUG')
    logger2 = configure_logging(json_logging=False, level='INFO')

    assert logger1 != logger2
    assert issuelink_logging.get_logger() is logger2
