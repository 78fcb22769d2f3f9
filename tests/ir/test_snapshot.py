"""
Tests for reading and writing IR snapshots.
"""
import json

import pytest

from core.errors import MappingError, SnapshotError
from ir.loss import LossClass, LossReport
from ir.snapshot import (
    dumps_corpus,
    load_corpus,
    load_loss_report,
    load_mapping_table,
    loads_corpus,
    read_json,
    save_corpus,
    write_json,
)


def test_save_and_load_corpus(tmp_path, sample_corpus):
    path = save_corpus(sample_corpus, tmp_path / "out" / "kjv.ir.json")
    assert path.exists()
    assert load_corpus(path).to_dict() == sample_corpus.to_dict()


def test_snapshot_preserves_unicode(tmp_path, sample_corpus):
    sample_corpus.documents[0].content_blocks[0].text = "בְּרֵאשִׁית"
    path = save_corpus(sample_corpus, tmp_path / "he.json")
    assert "בְּרֵאשִׁית" in path.read_text(encoding="utf-8")


def test_dumps_and_loads(sample_corpus):
    assert loads_corpus(dumps_corpus(sample_corpus)).to_dict() == sample_corpus.to_dict()


def test_missing_file(tmp_path):
    with pytest.raises(SnapshotError) as exc_info:
        load_corpus(tmp_path / "nope.json")
    assert exc_info.value.path.endswith("nope.json")


def test_invalid_json(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(SnapshotError):
        read_json(path)
    with pytest.raises(SnapshotError):
        loads_corpus("{not json")


def test_non_object_json(tmp_path):
    path = write_json({"x": 1}, tmp_path / "ok.json")
    assert read_json(path) == {"x": 1}

    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(SnapshotError):
        read_json(path)


def test_malformed_corpus(tmp_path):
    path = tmp_path / "corpus.json"
    path.write_text(json.dumps({"id": "c", "cross_references": [{"id": "x"}]}), encoding="utf-8")
    with pytest.raises(SnapshotError):
        load_corpus(path)


def test_load_mapping_table(tmp_path, kjv_to_lxx):
    path = write_json(kjv_to_lxx.to_dict(), tmp_path / "table.json")
    assert load_mapping_table(path) == kjv_to_lxx


def test_load_malformed_mapping_table(tmp_path):
    path = write_json({"id": "t", "mappings": [{"type": "exact"}]}, tmp_path / "table.json")
    with pytest.raises(MappingError):
        load_mapping_table(path)


def test_load_loss_report(tmp_path):
    report = LossReport(source_format="KJV", target_format="LXX", loss_class=LossClass.L1)
    report.add_lost_element("documents[0].spans[1].ref", "span_ref", "no equivalent in LXX", "Gen.1.2")
    path = write_json(report.to_dict(), tmp_path / "report.json")
    assert load_loss_report(path) == report


def test_load_loss_report_bad_class(tmp_path):
    path = write_json({"source_format": "a", "target_format": "b", "loss_class": "L9"}, tmp_path / "r.json")
    with pytest.raises(SnapshotError):
        load_loss_report(path)
