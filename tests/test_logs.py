from retsu.logs import log_err, log_info, log_warning


def test_log_err_colour_and_level(capsys):
    log_err("broken %s", "thing")
    out = capsys.readouterr().out
    assert out.startswith("\033[31m[")
    assert "[ERROR] broken thing" in out
    assert out.endswith("\033[0m\n")


def test_log_info_colour(capsys):
    log_info("hello")
    out = capsys.readouterr().out
    assert out.startswith("\033[34m[")
    assert "[INFO] hello" in out


def test_log_warning_formats_numbers(capsys):
    log_warning("%d", 42)
    out = capsys.readouterr().out
    assert out.startswith("\033[33m[")
    assert "[WARNING] 42" in out


def test_extra_args_are_appended(capsys):
    log_err("Failed to read:", "eof")
    out = capsys.readouterr().out
    assert "[ERROR] Failed to read: eof" in out


def test_percent_kept_without_args(capsys):
    log_info("100% done")
    assert "[INFO] 100% done" in capsys.readouterr().out