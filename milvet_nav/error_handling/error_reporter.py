"""
File-based error reporting sink.

Appends error records to a JSON Lines file and keeps per-kind statistics.
Registered with the ErrorManager as the production sink.
"""

import json
import logging
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional


class ErrorReporter:
    """
    Writes error records to disk.

    Provides functionality for:
    - JSON Lines error logging
    - Per-kind error statistics
    - Reading back recent errors and pruning old ones
    """

    def __init__(self, log_directory: Path):
        """
        Initialize error reporter.

        Args:
            log_directory: Directory for error log files
        """
        self.logger = logging.getLogger(__name__)
        self.log_directory = Path(log_directory)
        self.log_directory.mkdir(parents=True, exist_ok=True)

        self.error_log_file = self.log_directory / "error_log.jsonl"
        self.stats_file = self.log_directory / "error_stats.json"

        self._lock = threading.RLock()
        self._stats: Dict[str, Any] = {
            'total_errors': 0,
            'errors_by_kind': {},
            'errors_by_day': {},
        }
        self._load_stats()

    def __call__(self, record: Dict[str, Any]):
        """Sink entry point used by ErrorManager."""
        self.report(record)

    def report(self, record: Dict[str, Any]):
        """Persist one error record and update statistics."""
        with self._lock:
            try:
                with open(self.error_log_file, 'a', encoding='utf-8') as f:
                    f.write(json.dumps(record, ensure_ascii=False, default=str) + '\n')
            except OSError as e:
                self.logger.error(f"Failed to log error to file: {e}")
                return

            self._update_statistics(record)
            self._save_stats()

    def get_error_statistics(self) -> Dict[str, Any]:
        """Get current error statistics."""
        with self._lock:
            return json.loads(json.dumps(self._stats))

    def get_recent_errors(self, hours: int = 24) -> List[Dict[str, Any]]:
        """Get errors from the last N hours, newest first."""
        cutoff_time = datetime.now() - timedelta(hours=hours)
        recent_errors = []

        if not self.error_log_file.exists():
            return recent_errors

        with self._lock:
            try:
                with open(self.error_log_file, 'r', encoding='utf-8') as f:
                    for line in f:
                        try:
                            record = json.loads(line.strip())
                            if datetime.fromisoformat(record['occurred_at']) >= cutoff_time:
                                recent_errors.append(record)
                        except (json.JSONDecodeError, ValueError, KeyError):
                            continue
            except OSError as e:
                self.logger.error(f"Failed to read recent errors: {e}")

        return sorted(recent_errors, key=lambda x: x['occurred_at'], reverse=True)

    def cleanup_old_logs(self, days_to_keep: int = 30):
        """Drop log records older than the retention period."""
        if not self.error_log_file.exists():
            return

        cutoff_date = datetime.now() - timedelta(days=days_to_keep)
        temp_file = self.error_log_file.with_suffix('.tmp')

        with self._lock:
            try:
                with open(self.error_log_file, 'r', encoding='utf-8') as infile, \
                     open(temp_file, 'w', encoding='utf-8') as outfile:
                    for line in infile:
                        try:
                            record = json.loads(line.strip())
                            if datetime.fromisoformat(record['occurred_at']) >= cutoff_date:
                                outfile.write(line)
                        except (json.JSONDecodeError, ValueError, KeyError):
                            continue
                temp_file.replace(self.error_log_file)
                self.logger.info(f"Cleaned up error logs older than {days_to_keep} days")
            except OSError as e:
                self.logger.error(f"Failed to cleanup old logs: {e}")

    def _update_statistics(self, record: Dict[str, Any]):
        self._stats['total_errors'] += 1

        kind = record.get('kind', 'UNKNOWN_ERROR')
        by_kind = self._stats['errors_by_kind']
        by_kind[kind] = by_kind.get(kind, 0) + 1

        day_key = str(record.get('occurred_at', datetime.now().isoformat()))[:10]
        by_day = self._stats['errors_by_day']
        by_day[day_key] = by_day.get(day_key, 0) + 1

    def _load_stats(self):
        try:
            if self.stats_file.exists():
                with open(self.stats_file, 'r', encoding='utf-8') as f:
                    self._stats.update(json.load(f))
                self.logger.info("Loaded existing error statistics")
        except (OSError, json.JSONDecodeError) as e:
            self.logger.warning(f"Failed to load error statistics: {e}")

    def _save_stats(self):
        try:
            with open(self.stats_file, 'w', encoding='utf-8') as f:
                json.dump(self._stats, f, indent=2, ensure_ascii=False)
        except OSError as e:
            self.logger.error(f"Failed to save error statistics: {e}")
