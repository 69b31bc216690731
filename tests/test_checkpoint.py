import pytest

from lbp_indexer import checkpoint
from lbp_indexer.checkpoint import CheckpointStore, OutputRecord
from lbp_indexer.errors import PersistenceError

from conftest import TRADER, tx_id


def record(i, event="Buy"):
    return OutputRecord(tx_id(i), 100 + i, TRADER, event, "500", "2", "1.5")


class TestLoad:

    def test_missing_file_is_empty_log(self, log_path):
        assert checkpoint.load(log_path) == set()

    def test_first_field_of_each_line(self, log_path):
        log_path.write_text(f"{tx_id(1)}\t1\tx\tBuy\t1\t2\t3\n\n{tx_id(2)}\t2\tx\tSell\t1\t2\t3\n",
                            encoding="utf-8")
        assert checkpoint.load(log_path) == {tx_id(1), tx_id(2)}

    def test_accepts_legacy_double_tab_lines(self, log_path):
        log_path.write_text(f"{tx_id(1)}\t1\tx\tBuy\t1\t\t2\t\t3\n", encoding="utf-8")
        assert checkpoint.load(log_path) == {tx_id(1)}

    def test_torn_last_line_is_not_a_record(self, log_path):
        log_path.write_text(f"{tx_id(1)}\t1\tx\tBuy\t1\t2\t3\n{tx_id(2)}\t2\tx", encoding="utf-8")
        assert checkpoint.load(log_path) == {tx_id(1)}


class TestAppend:

    def test_line_format(self, log_path):
        checkpoint.append(log_path, record(1))
        line = log_path.read_text(encoding="utf-8")
        assert line == f"{tx_id(1)}\t101\t{TRADER}\tBuy\t500\t2\t1.5\n"
        assert line.count("\t") == 6

    def test_store_appends_in_order_and_tracks_ids(self, log_path):
        with CheckpointStore(log_path) as store:
            store.append(record(1))
            store.append(record(2, "Sell"))
            assert tx_id(1) in store
            assert len(store) == 2
        lines = log_path.read_text(encoding="utf-8").splitlines()
        assert [l.split("\t")[0] for l in lines] == [tx_id(1), tx_id(2)]
        assert checkpoint.load(log_path) == {tx_id(1), tx_id(2)}

    def test_existing_records_are_never_rewritten(self, log_path):
        checkpoint.append(log_path, record(1))
        before = log_path.read_text(encoding="utf-8")
        with CheckpointStore(log_path) as store:
            assert tx_id(1) in store
            store.append(record(2))
        assert log_path.read_text(encoding="utf-8").startswith(before)

    def test_torn_tail_dropped_before_next_append(self, log_path):
        good = record(1).to_line()
        log_path.write_text(good + f"{tx_id(9)}\t10", encoding="utf-8")
        with CheckpointStore(log_path) as store:
            store.append(record(2))
        assert log_path.read_text(encoding="utf-8") == good + record(2).to_line()

    def test_creates_parent_directory(self, tmp_path):
        path = tmp_path / "out" / "LBP.txt"
        checkpoint.append(path, record(1))
        assert checkpoint.load(path) == {tx_id(1)}

    def test_unwritable_path_is_persistence_error(self, tmp_path):
        with pytest.raises(PersistenceError):
            CheckpointStore(tmp_path).open()
