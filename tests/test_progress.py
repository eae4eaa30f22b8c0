from unittest.mock import patch

from progress import ProgressTracker, relieve_memory_pressure


def test_tracker_reports_to_callback():
    seen = []

    with ProgressTracker(3, "Synthesizing", callback=lambda *args: seen.append(args)) as progress:
        progress.update(1, "Row 1/1")
        progress.update(2)

    assert seen == [(1, 3, "Row 1/1"), (3, 3, "Synthesizing")]
    assert progress.current == 3


def test_relieve_memory_pressure_collects_above_threshold():
    messages = []

    with patch("progress.get_memory_usage_mb", return_value=900.0), \
            patch("progress.gc.collect") as collect:
        assert relieve_memory_pressure(messages.append, threshold_mb=800) is True

    collect.assert_called_once()
    assert "900 MB" in messages[0]


def test_relieve_memory_pressure_is_quiet_below_threshold():
    messages = []

    with patch("progress.get_memory_usage_mb", return_value=100.0), \
            patch("progress.gc.collect") as collect:
        assert relieve_memory_pressure(messages.append, threshold_mb=800) is False

    collect.assert_not_called()
    assert messages == []


def test_tracker_without_tqdm_draws_nothing(capsys):
    with ProgressTracker(2, "Generating sentences", use_tqdm=False) as progress:
        progress.update(1, "Auto")
        progress.update(1)

    assert progress.current == 2
    assert capsys.readouterr().err == ""
