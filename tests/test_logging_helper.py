"""
Tests for log value sanitization and the user action logger.
"""
import logging

from logging_helper import LoggingHelper, LogType


def test_sanitize_value_strips_line_breaks():
    assert LoggingHelper.sanitize_value('name\nFAKE ENTRY\r') == 'name?FAKE ENTRY?'


def test_sanitize_value_truncates():
    assert LoggingHelper.sanitize_value('x' * 60) == 'x' * 50 + '...'
    assert LoggingHelper.sanitize_value(12345, max_length=3) == '123...'


def test_loggers_are_separate():
    main = LoggingHelper.get_logger(LogType.MAIN)
    actions = LoggingHelper.get_logger(LogType.USER_ACTION)
    assert main.name == 'datatables'
    assert actions.name == 'datatables.user_actions'
    assert actions.propagate is False


def test_log_user_action(monkeypatch):
    messages = []
    actions = LoggingHelper.get_logger(LogType.USER_ACTION)
    monkeypatch.setattr(actions, 'info', lambda message: messages.append(message))

    LoggingHelper.log_user_action('Deleted record', 'users #5')
    LoggingHelper.log_user_action('Uploaded file')

    assert messages == ['Deleted record - users #5', 'Uploaded file']


def test_log_error_with_trace_includes_exception(monkeypatch):
    captured = {}
    main = LoggingHelper.get_logger(LogType.MAIN)

    def fake_error(message, exc_info=False):
        captured['message'] = message
        captured['exc_info'] = exc_info

    monkeypatch.setattr(main, 'error', fake_error)
    try:
        raise ValueError('boom')
    except ValueError as e:
        LoggingHelper.log_error_with_trace('Operation failed', e)

    assert captured == {'message': 'Operation failed: boom', 'exc_info': True}
    assert isinstance(main, logging.Logger)
