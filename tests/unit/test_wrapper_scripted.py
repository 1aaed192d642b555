"""
Wrapper behavior against a scripted driver.

The scripted driver lets each test decide what a statement returns and
where it fails, without a database.
"""
import datetime
from dataclasses import dataclass

import pytest
from dbwrapper import Wrapper, row_count, wrap
from dbwrapper.cursor import CursorState
from dbwrapper.exceptions import NoResultsError, QueryError
from dbwrapper.exceptions import ResultsExhaustedError, TransactionError
from dbwrapper.exceptions import ValidationError
from dbwrapper.mapping import column
from tests.fixtures.mocks import ScriptedDriverError


@dataclass
class Item:
    id: int = column('id')
    name: str = column('name', default='')
    seen: datetime.datetime | None = column('seen', default=None)


@pytest.fixture
def db(scripted_connection):
    return wrap(scripted_connection)


class TestQuery:

    def test_wrap_configures_driver(self, scripted_connection):
        """Test wrapping a driver connection switches it to auto-commit"""
        db = wrap(scripted_connection)
        assert isinstance(db, Wrapper)
        assert scripted_connection.isolation_level is None
        assert 'PRAGMA foreign_keys = ON' in scripted_connection.direct

    def test_buffers_all_rows(self, db, scripted_connection):
        """Test every row is buffered and the statement sees its args"""
        scripted_connection.push(columns=['id', 'name'], rows=[(1, 'a'), (2, 'b')])
        db.query('select id, name from item where id > %s', 0)
        assert db.row_count() == 2
        assert db.columns == ['id', 'name']
        sql, params = scripted_connection.executed[-1]
        assert sql == 'select id, name from item where id > ?'
        assert params == (0,)

    def test_partial_buffer_on_driver_error(self, db, scripted_connection):
        """Test rows read before a driver failure stay buffered"""
        scripted_connection.push(columns=['id'], rows=[(1,), (2,), (3,)], fail_after=2)
        with pytest.raises(ScriptedDriverError):
            db.query('select id from item')
        assert db.row_count() == 2
        assert db.next()
        assert db.get_int('id') == 1

    def test_failed_statement_leaves_buffer_empty(self, db, scripted_connection):
        """Test a statement error discards the previous result"""
        scripted_connection.push(columns=['id'], rows=[(1,)])
        db.query('select id from item')
        scripted_connection.push(error=ScriptedDriverError('syntax error'))
        with pytest.raises(ScriptedDriverError):
            db.query('selec id from item')
        assert db.row_count() == 0
        assert not db.has_results()

    def test_requery_resets_cursor(self, db, scripted_connection):
        """Test a new query rewinds both cursor counters"""
        scripted_connection.push(columns=['id'], rows=[(1,), (2,)])
        scripted_connection.push(columns=['id'], rows=[(9,)])
        db.query('select id from item')
        while db.next():
            pass
        db.query('select id from item')
        assert db.results.state is CursorState.EMPTY
        assert db.next()
        assert db.get_int('id') == 9

    def test_iterating(self, db, scripted_connection):
        """Test iterating the wrapper walks the buffered rows"""
        scripted_connection.push(columns=['id'], rows=[(1,), (2,), (3,)])
        db.query('select id from item')
        assert [row.get_int('id') for row in db] == [1, 2, 3]


class TestQueryOne:

    def test_single_value(self, db, scripted_connection):
        """Test the value comes back through get_interface"""
        scripted_connection.push(columns=['count'], rows=[(7,)])
        assert db.query_one('select count(*) from item') == '7'

    def test_zero_rows(self, db, scripted_connection):
        """Test no rows yields None even with several columns"""
        scripted_connection.push(columns=['a', 'b'], rows=[])
        assert db.query_one('select a, b from item') is None

    def test_multiple_columns(self, db, scripted_connection):
        """Test more than one column is rejected"""
        scripted_connection.push(columns=['a', 'b'], rows=[(1, 2)])
        with pytest.raises(ValidationError, match='only return one value'):
            db.query_one('select a, b from item')

    def test_not_buffered(self, db, scripted_connection):
        """Test the single value does not stay in the buffer"""
        scripted_connection.push(columns=['id'], rows=[(1,), (2,)])
        scripted_connection.push(columns=['n'], rows=[(5,)])
        db.query('select id from item')
        db.query_one('select 5')
        assert db.row_count() == 0


class TestExecute:

    def test_rows_affected_and_commit(self, db, scripted_connection):
        """Test execute commits outside a transaction"""
        scripted_connection.push(rowcount=3, lastrowid=12)
        assert db.execute('update item set name = ?', 'x') == 3
        assert scripted_connection.commits == 1
        assert db.get_rows_affected() == 3
        assert db.get_last_inserted_id() == 12

    def test_nothing_executed(self, db):
        """Test result accessors require an earlier execute"""
        with pytest.raises(ValidationError):
            db.get_last_inserted_id()
        with pytest.raises(ValidationError):
            db.get_rows_affected()

    def test_no_inserted_id(self, db, scripted_connection):
        """Test a driver without an id reports an error"""
        scripted_connection.push(rowcount=1, lastrowid=None)
        db.execute('insert into item (name) values (?)', 'x')
        with pytest.raises(QueryError):
            db.get_last_inserted_id()

    def test_args_ignored_without_placeholders(self, db, scripted_connection):
        """Test args are dropped when the statement has no placeholders"""
        scripted_connection.push(rowcount=0)
        db.execute('delete from item', 1)
        assert scripted_connection.executed[-1] == ('delete from item', None)


class TestTransactions:

    def test_commit(self, db, scripted_connection):
        """Test statements inside a transaction commit once at the end"""
        db.begin()
        assert scripted_connection.isolation_level == 'DEFERRED'
        scripted_connection.push(rowcount=1)
        scripted_connection.push(rowcount=1)
        db.execute('insert into item values (?)', 1)
        db.execute('insert into item values (?)', 2)
        assert scripted_connection.commits == 0
        db.commit()
        assert scripted_connection.commits == 1
        assert scripted_connection.isolation_level is None
        assert db.tx is None

    def test_revert(self, db, scripted_connection):
        """Test revert rolls back and restores auto-commit"""
        db.begin()
        db.revert()
        assert scripted_connection.rollbacks == 1
        assert scripted_connection.isolation_level is None
        assert not db.connection.in_transaction

    def test_nested_begin(self, db):
        """Test a second begin is refused"""
        db.begin()
        with pytest.raises(TransactionError):
            db.begin()

    def test_commit_without_begin(self, db):
        """Test commit and revert need an open transaction"""
        with pytest.raises(TransactionError):
            db.commit()
        with pytest.raises(TransactionError):
            db.revert()

    def test_context_manager_reverts_on_error(self, db, scripted_connection):
        """Test the transaction block reverts and re-raises"""
        with pytest.raises(RuntimeError), db.transaction():
            raise RuntimeError('boom')
        assert scripted_connection.rollbacks == 1
        assert scripted_connection.commits == 0
        assert db.tx is None

    def test_close_reverts(self, db, scripted_connection):
        """Test closing the wrapper reverts an open transaction"""
        db.begin()
        db.close()
        assert scripted_connection.rollbacks == 1
        assert scripted_connection.closed


class TestCursor:

    def test_getters_without_results(self, db):
        """Test getters read zero values when nothing is buffered"""
        assert db.get_int('id') == 0
        assert db.get_string('name') == ''
        assert db.get_bool('flag') is False
        assert db.check_int('id') == (0, False)
        assert db.get_interface('id') is None
        with pytest.raises(NoResultsError):
            db.current()

    def test_getters_past_end(self, db, scripted_connection):
        """Test getters read zero values once the rows run out"""
        scripted_connection.push(columns=['id'], rows=[(1,)])
        db.query('select id from item')
        assert db.next()
        assert not db.next()
        assert db.get_int('id') == 0
        with pytest.raises(ResultsExhaustedError):
            db.current()

    def test_read_before_next(self, db, scripted_connection):
        """Test reading without next reads the first row"""
        scripted_connection.push(columns=['id'], rows=[(4,), (5,)])
        db.query('select id from item')
        assert db.get_int('id') == 4

    def test_row_count_function(self, db, scripted_connection):
        """Test the module-level row count handles a missing wrapper"""
        assert row_count(None) == 0
        scripted_connection.push(columns=['id'], rows=[(1,)])
        db.query('select id from item')
        assert row_count(db) == 1

    def test_unmarshal_to(self, db, scripted_connection):
        """Test JSON columns decode into the caller's container"""
        scripted_connection.push(columns=['doc', 'list', 'empty'],
                                 rows=[('{"a": 1}', '[1, 2]', '')])
        db.query('select doc, list, empty from item')
        db.next()
        target = {'b': 2}
        db.unmarshal_to('doc', target)
        assert target == {'a': 1, 'b': 2}
        items = ['x']
        assert db.unmarshal_to('list', items) == [1, 2]
        assert items == [1, 2]
        assert db.unmarshal_to('empty', target) is target

    def test_unmarshal_without_row(self, db):
        """Test unmarshal with no current row reads every column as absent"""
        item = db.unmarshal(Item(id=3, name='kept'))
        assert (item.id, item.name) == (0, '')


class TestUnwrap:

    @pytest.fixture
    def loaded(self, db, scripted_connection):
        scripted_connection.push(columns=['id', 'name', 'seen'],
                                 rows=[(1, 'a', '2023-01-02 15:04:05'), (2, 'b', None)])
        db.query('select id, name, seen from item')
        return db

    def test_records(self, loaded):
        """Test every buffered row becomes one record"""
        items = loaded.unwrap([Item(id=99)], Item)
        assert [(i.id, i.name) for i in items] == [(1, 'a'), (2, 'b')]
        assert items[0].seen == datetime.datetime(2023, 1, 2, 15, 4, 5, tzinfo=datetime.timezone.utc)

    def test_callback_called_per_record(self, loaded):
        """Test the callback sees each filled record"""
        seen = []

        def collect(item: Item):
            seen.append(item.id)

        loaded.unwrap([], Item, collect)
        assert seen == [1, 2]

    def test_into_none(self, loaded):
        """Test unwrapping into None is rejected"""
        with pytest.raises(ValidationError, match='forgot to pass a list'):
            loaded.unwrap(None, Item)

    def test_into_not_a_list(self, loaded):
        """Test unwrapping into something other than a list is rejected"""
        with pytest.raises(ValidationError):
            loaded.unwrap((), Item)

    def test_no_rows_skips_checks(self, db, scripted_connection):
        """Test nothing is validated when there are no rows"""
        scripted_connection.push(columns=['id'], rows=[])
        db.query('select id from item')
        into = [1, 2]
        assert db.unwrap(into, int, 'not callable') == []
        assert into == []

    def test_after_reading_a_getter(self, loaded):
        """Test reading the first row beforehand still maps every row once"""
        assert loaded.get_string('name') == 'a'
        items = loaded.unwrap([], Item)
        assert [i.id for i in items] == [1, 2]

    def test_after_scanning_every_row(self, loaded):
        """Test a finished scanner loop does not leave unwrap empty"""
        while loaded.next():
            pass
        items = loaded.unwrap([], Item)
        assert len(items) == loaded.row_count() == 2

    def test_twice(self, loaded):
        """Test unwrapping the same result twice gives the same records"""
        assert loaded.unwrap([], Item) == loaded.unwrap([], Item)

    def test_callback_not_callable(self, loaded):
        """Test a non-callable callback is rejected"""
        with pytest.raises(ValidationError, match='not callable'):
            loaded.unwrap([], Item, 42)

    def test_callback_arity(self, loaded):
        """Test the callback must take exactly one parameter"""
        with pytest.raises(ValidationError, match='exactly one parameter'):
            loaded.unwrap([], Item, lambda a, b: None)
        with pytest.raises(ValidationError, match='exactly one parameter'):
            loaded.unwrap([], Item, lambda: None)

    def test_callback_wrong_type(self, loaded):
        """Test an annotated callback must take the record type"""
        def other(value: int):
            pass

        with pytest.raises(ValidationError, match='does not match'):
            loaded.unwrap([], Item, other)

    def test_callback_checked_before_mapping(self, loaded):
        """Test a bad callback fails before any record is added"""
        into = []
        with pytest.raises(ValidationError):
            loaded.unwrap(into, Item, lambda a, b: None)
        assert into == []
        assert loaded.current_scan == -1

    def test_not_a_dataclass(self, loaded):
        """Test the record type must be a dataclass"""
        with pytest.raises(ValidationError):
            loaded.unwrap([], dict)


if __name__ == '__main__':
    __import__('pytest').main([__file__])
