from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

from src.services.progress import ProgressTracker


class TestProgressTracker:
    def test_disabled_without_tty(self):
        with patch("src.services.progress.is_tty_enabled", return_value=False):
            tracker = ProgressTracker(3)
        assert tracker.pbar is None
        tracker.start_file(Path("a.csv"))
        tracker.set_postfix(ok=1)
        tracker.finish_file()
        tracker.close()
        assert tracker.current_file == 1

    def test_bar_advances_per_file(self):
        with patch("src.services.progress.is_tty_enabled", return_value=True), patch(
            "src.services.progress.tqdm"
        ) as mock_tqdm:
            with ProgressTracker(2, description="Preflight") as tracker:
                tracker.start_file(Path("data/a.csv"))
                tracker.finish_file(advanceable=False)
            bar = mock_tqdm.return_value
            assert mock_tqdm.call_args.kwargs["total"] == 2
            bar.set_description.assert_any_call("Preflight (a.csv)")
            bar.update.assert_called_once_with(1)
            bar.close.assert_called_once()
            assert tracker.pbar is None
