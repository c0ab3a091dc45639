import pytest

from shopnexus.dbrouter import DBRouter, is_write_operation


class FakePool:
    def __init__(self, name):
        self.name = name
        self.calls = []

    def execute(self, sql, *args):
        self.calls.append(("execute", sql, args))
        return self.name

    def query(self, sql, *args):
        self.calls.append(("query", sql, args))
        return self.name

    def query_row(self, sql, *args):
        self.calls.append(("query_row", sql, args))
        return self.name

    def copy_from(self, table_name, column_names, rows):
        rows = list(rows)
        self.calls.append(("copy_from", tuple(table_name), tuple(column_names)))
        return len(rows)

    def begin(self):
        self.calls.append(("begin",))
        return self.name


@pytest.mark.parametrize(
    "query",
    [
        "INSERT INTO users VALUES (1)",
        "  update users set name = 'a'",
        "DELETE FROM users",
        "create table t (id int)",
        "DROP TABLE t",
        "alter table t add column x int",
        "truncate t",
        "CALL refresh()",
        "-- name: CreateUser :one\nINSERT INTO users (name) VALUES ($1)",
        "/* note */ insert into t values (1)",
        "WITH moved AS (DELETE FROM a RETURNING *) SELECT * FROM moved",
    ],
)
def test_write_queries(query):
    assert is_write_operation(query) is True


@pytest.mark.parametrize(
    "query",
    [
        "SELECT * FROM users",
        "-- name: GetUser :one\nSELECT * FROM users WHERE id = $1",
        "/* insert */ select 1",
        "WITH x AS (SELECT 1) SELECT * FROM x",
        "select * from t -- delete later",
        "",
        "   ",
    ],
)
def test_read_queries(query):
    assert is_write_operation(query) is False


def test_comment_line_only_then_select():
    assert is_write_operation("-- insert\n-- update\nselect 1") is False


def test_routing_of_reads_and_writes():
    read, write = FakePool("read"), FakePool("write")
    router = DBRouter(read, write)

    assert router.query("SELECT 1", 5) == "read"
    assert router.query_row("select * from t where id = $1", 7) == "read"
    assert router.execute("UPDATE t SET x = $1", 3) == "write"
    assert read.calls == [("query", "SELECT 1", (5,)), ("query_row", "select * from t where id = $1", (7,))]
    assert write.calls == [("execute", "UPDATE t SET x = $1", (3,))]


def test_select_pool():
    read, write = FakePool("read"), FakePool("write")
    router = DBRouter(read, write)
    assert router.select_pool("select 1") is read
    assert router.select_pool("insert into t values (1)") is write


def test_copy_from_and_begin_use_write_pool():
    read, write = FakePool("read"), FakePool("write")
    router = DBRouter(read, write)

    count = router.copy_from(["public", "users"], ["id", "name"], iter([(1, "a"), (2, "b")]))
    assert count == 2
    assert router.begin() == "write"
    assert read.calls == []
    assert write.calls == [("copy_from", ("public", "users"), ("id", "name")), ("begin",)]