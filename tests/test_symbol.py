import random
import threading

import pytest

from vectordsp.symbol import (
    HASH_TABLE_SIZE,
    Symbol,
    SymbolTable,
    kr_hash,
    symbol_hash,
    symbol_table,
)


@pytest.fixture
def table():
    return SymbolTable()


def test_simple(table):
    a = Symbol("hello", table)
    b = Symbol("world", table)
    c = Symbol("hello", table)
    assert a.id == c.id
    assert a.id != b.id
    assert a == c


def test_threads(table):
    size = 1024
    names = [f"name{i}" for i in range(size)]

    def worker():
        for name in names:
            Symbol(name, table)

    threads = [threading.Thread(target=worker) for _ in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert table.audit()
    assert len(table) == size + 1


def test_collision_pairs(table):
    pairs = [("KP", "BAZ"), ("KL", "mse")]
    for x, y in pairs:
        assert kr_hash(x) == kr_hash(y)
        sx = Symbol(x, table)
        sy = Symbol(y, table)
        assert sx != sy
        assert table.hash_of_id(sx.id) == table.hash_of_id(sy.id)
        assert str(sx) == x and str(sy) == y
    assert table.audit()


def test_hashes_str_and_bytes_agree():
    s1 = "hello"
    s2 = "محمد بن سعيد"
    assert kr_hash(s1) == kr_hash(s1.encode("utf-8"))
    assert kr_hash(s2) == kr_hash(s2.encode("utf-8"))
    assert 0 <= kr_hash(s2) < HASH_TABLE_SIZE


def test_hash_of_null_symbol(table):
    assert symbol_hash(Symbol("", table)) == 0
    assert kr_hash("") == 0


def test_symbol_hash_matches_text_hash(table):
    s = Symbol("fkjcouvrhqtrk", table)
    assert symbol_hash(s) == kr_hash("fkjcouvrhqtrk")
    assert table.hash_of_id(s.id) == symbol_hash(s)


def _gibberish(count):
    letters = "abcdefghjklmnopqrstuvw"
    p = 0
    out = []
    for i in range(count):
        chars = []
        for j in range(3 + (i % 12)):
            p += i * j + 1
            p += i % 37
            p += j % 23
            p = abs(p)
            chars.append(letters[p % 22])
        out.append("".join(chars))
    return out


def test_maps(table):
    strings = _gibberish(100)
    sym_map = {}
    str_map = {}
    for i, s in enumerate(strings):
        sym = Symbol(s, table)
        sym_map[sym] = float(i)
        str_map[s] = float(i)

    rng = random.Random(1234)
    indexes = [rng.randrange(len(strings)) for _ in range(5000)]

    string_sum = sum(str_map[strings[i]] for i in indexes)
    symbol_sum = sum(sym_map[Symbol(strings[i], table)] for i in indexes)
    assert string_sum == symbol_sum

    ordered = sorted(sym_map)
    assert [s.id for s in ordered] == sorted(s.id for s in sym_map)
    assert table.audit()


def test_identity(table):
    a = Symbol("xxx_yyy", table)
    b = Symbol("xxx", table)
    assert a != b
    assert a.begins_with(b)
    assert not b.begins_with(a)
    assert a.ends_with(Symbol("yyy", table))


def test_utf8_round_trip(table):
    strings = ["Федор", "小林 尊", "محمد بن سعيد"]
    symbols = [Symbol(s, table) for s in strings]
    assert [str(s) for s in symbols] == strings
    assert sum(len(str(s)) for s in symbols) == 21
    assert table.audit()


def test_null_symbol_is_false(table):
    assert not Symbol("", table)
    assert Symbol("", table).id == 0
    assert Symbol("a", table)


def test_concatenation(table):
    s = Symbol("foo", table) + Symbol("bar", table)
    assert s == Symbol("foobar", table)
    assert str(s) == "foobar"


def test_clear_resets_table(table):
    Symbol("one", table)
    Symbol("two", table)
    assert len(table) == 3
    table.clear()
    assert len(table) == 1
    assert Symbol("two", table).id == 1


def test_ids_follow_creation_order(table):
    a = Symbol("zzz", table)
    b = Symbol("aaa", table)
    assert a < b
    assert table.get_text(a.id) == "zzz"


def test_equality_with_string(table):
    assert Symbol("hello", table) == "hello"
    assert Symbol("hello", table) != "world"


def test_shared_table_is_singleton():
    assert symbol_table() is symbol_table()
    a = Symbol("shared-table-entry")
    assert a.table is symbol_table()
    assert Symbol("shared-table-entry") == a


def test_dump_lists_symbols(table, capsys):
    Symbol("dumped", table)
    table.dump()
    out = capsys.readouterr().out
    assert "2 symbols:" in out
    assert "ID 1 = dumped" in out