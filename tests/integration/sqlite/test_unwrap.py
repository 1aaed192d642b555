"""
Mapping SQLite rows onto dataclass records.
"""
import datetime
from dataclasses import dataclass, field

import pytest
from dbwrapper.decode import ZERO_TIME
from dbwrapper.mapping import column
from shapely.geometry import LineString, Point


@dataclass
class Person:
    id: int = column('id')
    name: str = column('name', default='')
    age: int = column('age', default=-1)
    active: bool = column('active', default=False)
    score: float = column('score', default=-1.0)
    tags: list[str] = column('tags', default_factory=lambda: ['unset'])
    joined: datetime.datetime | None = column('joined', default=None)
    home: Point | None = column('home', default=None)
    route: LineString | None = column('route', default=None)
    nickname: str = field(default='none')


@pytest.fixture
def people(sqlite_wrapper):
    sqlite_wrapper.query('select * from person order by id')
    return {p.name: p for p in sqlite_wrapper.unwrap([], Person)}


def test_one_record_per_row(people):
    """Test every row maps to a record"""
    assert list(people) == ['Alice', 'Bob', 'Charlie']
    assert [p.id for p in people.values()] == [1, 2, 3]


def test_scalars(people):
    """Test integer, boolean and float columns"""
    alice, bob, charlie = people['Alice'], people['Bob'], people['Charlie']
    assert (alice.age, alice.active, alice.score) == (30, True, 4.5)
    assert (bob.age, bob.active, bob.score) == (25, False, 3.25)
    assert (charlie.age, charlie.score) == (0, 0.0)


def test_sequences(people):
    """Test JSON arrays fill lists and bad text leaves the default"""
    assert people['Alice'].tags == ['admin', 'ops']
    assert people['Bob'].tags == ['unset']
    assert people['Charlie'].tags == ['unset']


def test_timestamps(people):
    """Test timestamp text maps to UTC instants"""
    assert people['Alice'].joined == datetime.datetime(2023, 1, 2, 15, 4, 5, tzinfo=datetime.timezone.utc)
    assert people['Bob'].joined == ZERO_TIME
    assert people['Charlie'].joined is None


def test_geometry(people):
    """Test prefixed WKB blobs decode and bad blobs are left alone"""
    alice = people['Alice']
    assert alice.home.equals(Point(1.5, 2.5))
    assert alice.route.equals(LineString([(0, 0), (1, 1)]))
    assert people['Bob'].home is None
    assert people['Charlie'].home is None
    assert people['Charlie'].route is None


def test_untagged_field(people):
    """Test untagged fields keep their defaults"""
    assert {p.nickname for p in people.values()} == {'none'}


def test_timestamp_layouts(sqlite_wrapper, timestamp_values):
    """Test every accepted timestamp layout round trips through a column"""
    for text, expected in timestamp_values:
        sqlite_wrapper.query('select ? as joined', text)
        sqlite_wrapper.next()
        record = sqlite_wrapper.unmarshal(Person(id=0))
        assert record.joined == expected, text


def test_unmarshal_current_row(sqlite_wrapper):
    """Test unmarshal fills one record from the row under the cursor"""
    sqlite_wrapper.query('select id, name from person order by id')
    sqlite_wrapper.next()
    sqlite_wrapper.next()
    record = sqlite_wrapper.unmarshal(Person(id=0))
    assert (record.id, record.name) == (2, 'Bob')
    assert record.age == 0


def test_callback(sqlite_wrapper):
    """Test the callback runs once per filled record"""
    seen = []

    def greet(person: Person):
        seen.append(f'hello {person.name}')

    sqlite_wrapper.query('select id, name from person order by id')
    sqlite_wrapper.unwrap([], Person, greet)
    assert seen == ['hello Alice', 'hello Bob', 'hello Charlie']


def test_unmarshal_to(sqlite_wrapper):
    """Test a JSON column decodes into a caller list"""
    sqlite_wrapper.query('select tags from person where id = 1')
    sqlite_wrapper.next()
    tags = []
    sqlite_wrapper.unmarshal_to('tags', tags)
    assert tags == ['admin', 'ops']



@dataclass
class Member:
    id: int = column('id')
    name: str = column('name', default='')
    email: str = column('email', default='unset')


def test_null_column_maps_to_zero_value(sqlite_wrapper):
    """Test a NULL text column maps to the empty string"""
    sqlite_wrapper.execute('create table member (id integer, name text, email text)')
    sqlite_wrapper.execute('insert into member values (?, ?, ?)', 7, 'Ada', None)
    sqlite_wrapper.query('select id, name, email from member')
    members = sqlite_wrapper.unwrap([], Member)
    assert members == [Member(id=7, name='Ada', email='')]


def test_records_match_getters(sqlite_wrapper):
    """Test each mapped field equals what the matching getter reads"""
    sql = 'select id, name, age, active from person order by id'
    sqlite_wrapper.query(sql)
    people = sqlite_wrapper.unwrap([], Person)
    sqlite_wrapper.query(sql)
    for person in people:
        assert sqlite_wrapper.next()
        assert person.id == sqlite_wrapper.get_int('id')
        assert person.name == sqlite_wrapper.get_string('name')
        assert person.age == sqlite_wrapper.get_int('age')
        assert person.active == sqlite_wrapper.get_bool('active')
    assert not sqlite_wrapper.next()


def test_unwrap_after_getter(sqlite_wrapper):
    """Test a getter read before unwrap does not skip the first row"""
    sqlite_wrapper.query('select id, name from person order by id')
    assert sqlite_wrapper.get_string('name') == 'Alice'
    people = sqlite_wrapper.unwrap([], Person)
    assert [p.name for p in people] == ['Alice', 'Bob', 'Charlie']


def test_unwrap_after_scan_loop(sqlite_wrapper):
    """Test unwrap after a full scanner loop still maps every row"""
    sqlite_wrapper.query('select id, name from person order by id')
    while sqlite_wrapper.next():
        pass
    people = sqlite_wrapper.unwrap([], Person)
    assert len(people) == sqlite_wrapper.row_count() == 3

if __name__ == '__main__':
    __import__('pytest').main([__file__])
