from __future__ import annotations

from issuesteward.errors import SearchError, WriteError, classify_error, redact
from issuesteward.github_rest import GitHubAPIError


def test_classify_rate_limit():
    info = classify_error(RuntimeError('API Rate Limit Exceeded'))
    assert info.category == 'github.rate_limit'
    assert info.transient is True


def test_classify_rate_limit_by_status():
    info = classify_error(GitHubAPIError('Too many requests', status=429))
    assert info.category == 'github.rate_limit'
    assert info.details == {'status': 429}


def test_classify_abuse():
    info = classify_error(RuntimeError('Abuse detection triggered'))
    assert info.category == 'github.abuse'
    assert info.transient is True


def test_classify_network():
    info = classify_error(RuntimeError('Connection reset by peer'))
    assert info.category == 'network'
    assert info.transient is True


def test_classify_generic():
    info = classify_error(ValueError('Some other problem'))
    assert info.category == 'generic'
    assert info.transient is False
    assert info.original_type == 'ValueError'


def test_redact_tokens():
    sample = (
        "Token ghp_ABCDEFGHIJKLMNOPQRSTUVWX plus github_pat_1234567890abcdefghijkl "
        "and header Bearer abcdefghijklmnopqrstuvwxyz0123"
    )
    out = redact(sample)
    assert 'ghp_' not in out
    assert 'github_pat_' not in out
    assert 'abcdefghijklmnopqrstuvwxyz0123' not in out
    assert out.count('<redacted>') == 3


def test_classification_redacts_message():
    info = classify_error(RuntimeError('timed out using ghs_ABCDEFGHIJKLMNOPQRSTUVWX'))
    assert info.category == 'network'
    assert 'ghs_' not in info.message


def test_error_attributes():
    search = SearchError('search down', query='is:issue')
    write = WriteError('nope', operation='update', issue_number=3)
    assert search.query == 'is:issue'
    assert (write.operation, write.issue_number) == ('update', 3)
    assert isinstance(write, RuntimeError)
