import yaml

from ffconvert.services.logging_service import ErrorLog, Log, SuccessLog


def test_error_log_appends_records(tmp_path):
    error_log = ErrorLog(tmp_path / "logs")

    error_log.write("Input file: a.mov", "Result: ERR_CONVERT: ffmpeg failed: exit=1")
    error_log.write("Input file: b.mov")

    content = error_log.log_file_path.read_text(encoding="utf-8")
    assert content.count(Log.linesep_marker) == 2
    assert content.index("a.mov") < content.index("b.mov")


def test_error_log_ignores_empty_records(tmp_path):
    error_log = ErrorLog(tmp_path)

    error_log.write()

    assert not error_log.log_file_path.exists()


def test_success_log_numbers_entries(tmp_path):
    success_log = SuccessLog(tmp_path)

    success_log.write({"input_file": "a.mov"})
    success_log.write({"input_file": "b.mov"})

    entries = yaml.safe_load(success_log.log_file_path.read_text(encoding="utf-8"))
    assert entries == [{"index": 1, "input_file": "a.mov"}, {"index": 2, "input_file": "b.mov"}]


def test_success_log_recovers_from_a_corrupt_file(tmp_path):
    success_log = SuccessLog(tmp_path)
    success_log.log_file_path.write_text("just: [unbalanced", encoding="utf-8")

    success_log.write({"input_file": "a.mov"})

    entries = yaml.safe_load(success_log.log_file_path.read_text(encoding="utf-8"))
    assert entries == [{"index": 1, "input_file": "a.mov"}]
