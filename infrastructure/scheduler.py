"""
Background scheduler for periodic status page refreshes.

This module implements a centralized scheduler using APScheduler to periodically
fetch a snapshot from the status page backend and recompute the public page.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.pool import ThreadPoolExecutor

from application.interfaces import StatusApi
from application.services.status_page import StatusPageService
from infrastructure.api.codec import status_page_to_dict


logger = logging.getLogger(__name__)

class StatusScheduler:
    """Manages periodic status page refreshes."""

    _instance: Optional['StatusScheduler'] = None
    _lock = threading.Lock()

    def __new__(cls):
        """Implement singleton pattern to ensure only one scheduler instance exists."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = super(StatusScheduler, cls).__new__(cls)
                cls._instance._initialized = False
            return cls._instance

    def __init__(self):
        """Initialize the scheduler if not already initialized."""
        if self._initialized:
            return

        jobstores = {'default': MemoryJobStore()}
        executors = {'default': ThreadPoolExecutor(1)}
        job_defaults = {
            'coalesce': True,
            'max_instances': 1,
            'misfire_grace_time': 60  # Allow jobs to run up to 60s late
        }

        self._scheduler = BackgroundScheduler(
            jobstores=jobstores,
            executors=executors,
            job_defaults=job_defaults
        )

        self._api: Optional[StatusApi] = None
        self._page_service = StatusPageService()
        self._latest_data: Dict[str, Any] = self._empty_data()
        self._data_lock = threading.RLock()
        self._is_running = False
        self._initialized = True

        logger.info("Status scheduler initialized")

    @staticmethod
    def _empty_data() -> Dict[str, Any]:
        return {
            'overall': None,
            'groups': [],
            'active_incidents': [],
            'maintenance': [],
            'history': {},
            'last_updated': datetime.now(timezone.utc).isoformat(),
            'error': None
        }

    def set_api(self, api: StatusApi) -> None:
        """Set the backend client used for refreshes.

        Args:
            api: The status backend client
        """
        self._api = api

    def start(self, refresh_interval: int = 60) -> None:
        """Start the background scheduler.

        Args:
            refresh_interval: Interval between refreshes in seconds

        Raises:
            RuntimeError: If the backend client is not set
        """
        if not self._api:
            raise RuntimeError("Status API client must be set before starting scheduler")

        if self._is_running:
            logger.info("Scheduler is already running, skipping start")
            return

        self._scheduler.add_job(
            self._refresh,
            trigger=IntervalTrigger(seconds=refresh_interval),
            id='refresh_status_page',
            replace_existing=True
        )

        try:
            self._scheduler.start()
            self._is_running = True
            logger.info(f"Status scheduler started with refresh interval of {refresh_interval} seconds")

            # Initial refresh
            self._refresh()
        except Exception as e:
            logger.error(f"Failed to start scheduler: {str(e)}")
            raise

    def shutdown(self) -> None:
        """Shutdown the scheduler gracefully."""
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            self._is_running = False
            logger.info("Status scheduler shutdown")

    def get_latest_data(self) -> Dict[str, Any]:
        """Get the latest status page data.

        Returns:
            Dict containing the computed status page and refresh metadata
        """
        with self._data_lock:
            return self._latest_data.copy()

    def force_update(self) -> Dict[str, Any]:
        """Force an immediate refresh.

        Returns:
            Dict containing the updated status page data
        """
        self._refresh()
        return self.get_latest_data()

    def _refresh(self) -> None:
        """Fetch a snapshot, rebuild the status page and cache the result."""
        if not self._api:
            logger.error("Status API client not set, cannot refresh")
            return

        try:
            logger.info("Refreshing status page")

            snapshot = self._api.get_snapshot()
            page = self._page_service.build(snapshot)

            data = status_page_to_dict(page)
            data['last_updated'] = datetime.now(timezone.utc).isoformat()
            data['snapshot_fetched_at'] = snapshot.fetched_at.isoformat()
            data['error'] = None

            with self._data_lock:
                self._latest_data = data

            logger.info(f"Status page refreshed for {len(page.services)} services")

        except Exception as e:
            logger.exception(f"Error refreshing status page: {str(e)}")

            with self._data_lock:
                self._latest_data['error'] = f"Failed to update: {str(e)}"
                self._latest_data['last_updated'] = datetime.now(timezone.utc).isoformat()


# Create a global scheduler instance
scheduler = StatusScheduler()
