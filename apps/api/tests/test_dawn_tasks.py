"""
Dawn task tests: local dawn window and result reporting.
"""

import sys
import os
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.config import settings
from core.exceptions import PermissionDeniedError
from models import DailyRecord
from services.dawn_protocol import DawnResult
from tasks import dawn_tasks
from tasks.dawn_tasks import in_dawn_window, run_dawn_protocol
from conftest import TODAY


class TestDawnWindow:
    def test_inside_window(self, monkeypatch):
        monkeypatch.setattr(settings, "OPERATOR_TIMEZONE", "UTC")
        monkeypatch.setattr(settings, "DAWN_HOUR", 5)
        assert in_dawn_window(datetime(2026, 3, 10, 5, 0, tzinfo=timezone.utc))
        assert in_dawn_window(datetime(2026, 3, 10, 5, 14, tzinfo=timezone.utc))

    def test_outside_window(self, monkeypatch):
        monkeypatch.setattr(settings, "OPERATOR_TIMEZONE", "UTC")
        monkeypatch.setattr(settings, "DAWN_HOUR", 5)
        assert not in_dawn_window(datetime(2026, 3, 10, 5, 15, tzinfo=timezone.utc))
        assert not in_dawn_window(datetime(2026, 3, 10, 4, 59, tzinfo=timezone.utc))

    def test_uses_operator_timezone(self, monkeypatch):
        monkeypatch.setattr(settings, "OPERATOR_TIMEZONE", "America/New_York")
        monkeypatch.setattr(settings, "DAWN_HOUR", 5)
        # 10:05 UTC is 05:05 EST in January, 06:05 EDT in March
        assert in_dawn_window(datetime(2026, 1, 15, 10, 5, tzinfo=timezone.utc))
        assert not in_dawn_window(datetime(2026, 3, 10, 10, 5, tzinfo=timezone.utc))


class TestDawnTask:
    def test_skipped_outside_window(self):
        with patch.object(dawn_tasks, "in_dawn_window", return_value=False), \
                patch.object(dawn_tasks, "get_db_sync") as get_db:
            result = run_dawn_protocol()
        assert result == {"status": "skipped", "reason": "outside_dawn_window"}
        get_db.assert_not_called()

    def test_success_summary(self):
        record = DailyRecord(date=TODAY, vitality=64, current_state="READY_FOR_LOAD")
        db = MagicMock()
        with patch.object(dawn_tasks, "get_db_sync", return_value=db), \
                patch.object(dawn_tasks, "_run_pipeline", new=AsyncMock(return_value=DawnResult(record=record))):
            result = run_dawn_protocol(force=True)
        assert result["status"] == "success"
        assert result["date"] == TODAY.isoformat()
        assert result["vitality"] == 64
        db.close.assert_called_once()

    def test_terminal_failure_is_reported(self):
        db = MagicMock()
        failure = AsyncMock(side_effect=PermissionDeniedError("denied"))
        with patch.object(dawn_tasks, "get_db_sync", return_value=db), \
                patch.object(dawn_tasks, "_run_pipeline", new=failure):
            result = run_dawn_protocol(force=True)
        assert result["status"] == "error"
        assert result["error_code"] == "WEARABLE_PERMISSION_DENIED"
        db.close.assert_called_once()
