"""
Unit tests for migration data models and helpers.
"""

import pytest

from runonce.errors import ERROR_BANNER, StatementExecutionError
from runonce.migrations.migration import (
    MigrationResult,
    MigrationSpec,
    RunStatus,
    as_statement_list,
    normalize,
)


pytestmark = pytest.mark.unit


class TestNormalize:

    @pytest.mark.parametrize('value', [None, '', ' ', '\t\n'])
    def test_blank_becomes_none(self, value):
        assert normalize(value) is None

    def test_value_kept_unchanged(self):
        assert normalize(' add_col ') == ' add_col '


class TestStatementList:

    def test_string_wrapped(self):
        assert as_statement_list('ALTER TABLE T ADD c INT') == ['ALTER TABLE T ADD c INT']

    def test_list_copied(self):
        original = ['S1', 'S2']
        copied = as_statement_list(original)

        copied.append('S3')

        assert original == ['S1', 'S2']

    def test_tuple_accepted(self):
        assert as_statement_list(('S1', 'S2')) == ['S1', 'S2']


class TestMigrationResult:

    @pytest.mark.parametrize('status, success', [
        (RunStatus.APPLIED, True),
        (RunStatus.SKIPPED, True),
        (RunStatus.ALREADY_EXISTS, True),
        (RunStatus.FAILED, False),
    ])
    def test_success(self, status, success):
        assert MigrationResult(key='k', status=status).success is success

    def test_repr(self):
        assert repr(MigrationResult(key='k', status=RunStatus.SKIPPED)) == '<MigrationResult(k, skipped)>'


def test_spec_unpacks_like_pair():
    key, statements = MigrationSpec('m1', ['S1'])
    assert key == 'm1'
    assert statements == ['S1']


def test_statement_execution_error_message():
    error = StatementExecutionError("Duplicate column name 'a'", 1060)
    assert error.error_code == 1060
    assert str(error) == "Migration SQL statement failed with error code 1060: Duplicate column name 'a'"
    assert '!!!Migration ERROR!!!' in ERROR_BANNER
