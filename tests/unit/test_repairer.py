"""
Unit tests for reconciliation repairer module.

Tests deletion record generation, including concurrent emitters.
"""

import threading

import pytest

from ldifcompare.ldif.model import DirectoryRecord
from ldifcompare.reconciliation.repairer import DeletionRecordEmitter


class TestDeletionRecordEmitter:
    """Test deletion record emission."""

    @pytest.fixture
    def path(self, tmp_path):
        return tmp_path / "delete.ldif"

    def test_file_is_created_lazily(self, path):
        """Test nothing is written when no record is emitted."""
        with DeletionRecordEmitter(path) as emitter:
            assert not emitter.is_open

        assert not path.exists()

    def test_emit_writes_header_once(self, path):
        """Test the version header precedes the deletion records."""
        with DeletionRecordEmitter(path) as emitter:
            assert emitter.emit(DirectoryRecord("uid=a,dc=com", {"sn": "A"}))
            assert emitter.emit(DirectoryRecord("uid=b,dc=com", {"sn": "B"}))

        assert path.read_text(encoding="utf-8") == (
            "version: 1\n"
            "\n"
            "dn: uid=a,dc=com\n"
            "changetype: delete\n"
            "\n"
            "dn: uid=b,dc=com\n"
            "changetype: delete\n"
            "\n"
        )

    def test_same_dn_is_emitted_once(self, path, metrics):
        """Test repeated and differently spelled DNs yield one record."""
        with DeletionRecordEmitter(path, metrics) as emitter:
            assert emitter.emit(DirectoryRecord("uid=a,dc=com", {"sn": "A"}))
            assert not emitter.emit(DirectoryRecord("UID=a, dc=com", {"sn": "other"}))
            assert emitter.emitted_count == 1

        assert path.read_text(encoding="utf-8").count("changetype: delete") == 1
        assert metrics.get_value("deletion_records_total") == 1

    def test_concurrent_emitters_write_one_record(self, path):
        """Test many threads reporting the same non-match produce one deletion."""
        emitter = DeletionRecordEmitter(path)
        record = DirectoryRecord("uid=x,dc=com", {"employeeID": "999"})
        barrier = threading.Barrier(8)
        results = []

        def worker():
            barrier.wait()
            results.append(emitter.emit(record))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        emitter.close()

        assert results.count(True) == 1
        content = path.read_text(encoding="utf-8")
        assert content.count("dn: uid=x,dc=com") == 1
        assert content.count("version: 1") == 1

    def test_close_is_idempotent(self, path):
        """Test closing twice is safe."""
        emitter = DeletionRecordEmitter(path)
        emitter.emit(DirectoryRecord("uid=a", {"sn": "A"}))

        emitter.close()
        emitter.close()

        assert not emitter.is_open

    def test_emit_after_close(self, path):
        """Test a closed emitter refuses new records."""
        emitter = DeletionRecordEmitter(path)
        emitter.close()

        with pytest.raises(RuntimeError):
            emitter.emit(DirectoryRecord("uid=a", {"sn": "A"}))
