"""Admin allocation screen: site catalog, engineers and batch allocation."""
import logging

from shared.enums import AllocationStatus, PriorityLevel
from ..services.record_store import RecordStoreError

ALLOCATIONS_TABLE = 'engineer_allocations'


class AllocationHandler:
    """Holds the allocation screen's data and filters.

    Data is re-fetched wholesale: after an allocation, and whenever the change
    feed reports any event on the allocations table.
    """

    def __init__(self, app):
        self.app = app
        self.logger = logging.getLogger(self.__class__.__name__)
        self.sites = []
        self.regions = []
        self.allocations = []
        self.engineers = []
        self.search = ''
        self.region = ''
        self.selected_site_ids = set()
        self.last_change_id = 0
        self._listeners = []

    def on_update(self, callback):
        self._listeners.append(callback)
        return callback

    @property
    def pending_count(self):
        return sum(1 for a in self.allocations if a.get('status') == AllocationStatus.PENDING.value)

    @property
    def allocated_site_ids(self):
        return {a['site_id'] for a in self.allocations}

    def refresh(self):
        """Fetch sites, regions, allocations and engineers; returns False if any fetch failed."""
        try:
            self.regions = self.app.record_store.regions()
            self.sites = self._fetch_sites()
            self.allocations = self.app.record_store.select(ALLOCATIONS_TABLE)
            self.engineers = self.app.record_store.select('engineer_profiles')
        except RecordStoreError as e:
            self.app.notifier.error("Failed to load allocation data", str(e))
            return False
        self._notify()
        return True

    def set_search(self, text):
        self.search = (text or '').strip()
        return self._refetch_sites()

    def set_region(self, region):
        self.region = region or ''
        return self._refetch_sites()

    def clear_filters(self):
        self.search = ''
        self.region = ''
        return self._refetch_sites()

    def toggle_site(self, site_id):
        if site_id in self.selected_site_ids:
            self.selected_site_ids.discard(site_id)
        else:
            self.selected_site_ids.add(site_id)
        return set(self.selected_site_ids)

    def allocate(self, engineer_id, site_ids=None, priority=PriorityLevel.MEDIUM.value, scheduled_date=None):
        """Allocate sites (the current selection by default) to one engineer profile.

        Returns the created allocations, or None on failure.
        """
        site_ids = sorted(site_ids if site_ids is not None else self.selected_site_ids)
        if not site_ids:
            self.app.notifier.error("Select at least one site to allocate")
            return None
        engineer = next((e for e in self.engineers if e['id'] == engineer_id), None)
        if engineer is None or not engineer.get('user_id'):
            self.app.notifier.error("Engineer has no user account to allocate to")
            return None

        row = {
            'user_id': engineer['user_id'],
            'site_ids': site_ids,
            'priority': priority,
            'status': AllocationStatus.ALLOCATED.value,
        }
        if scheduled_date:
            row['scheduled_date'] = scheduled_date
        try:
            reply = self.app.record_store.insert(ALLOCATIONS_TABLE, row)
        except RecordStoreError as e:
            self.app.notifier.error("Failed to allocate sites", str(e))
            return None

        created = reply.get('allocations', [])
        self.app.notifier.success("Sites allocated", f"{len(created)} site(s) allocated to {engineer['name']}")
        self.selected_site_ids.clear()
        self.refresh()
        return created

    def poll_changes(self):
        """Check the change feed once; any allocation event triggers a full refresh."""
        try:
            events, latest_id = self.app.record_store.changes(since=self.last_change_id, table=ALLOCATIONS_TABLE)
        except RecordStoreError as e:
            self.logger.warning(f"Change feed poll failed: {e}")
            return False
        self.last_change_id = latest_id
        if not events:
            return False
        self.logger.info(f"{len(events)} allocation change(s) since last poll, refreshing")
        return self.refresh()

    def _fetch_sites(self):
        return self.app.record_store.select('eskom_sites', search=self.search, region=self.region)

    def _refetch_sites(self):
        try:
            self.sites = self._fetch_sites()
        except RecordStoreError as e:
            self.app.notifier.error("Failed to load sites", str(e))
            return False
        self._notify()
        return True

    def _notify(self):
        for listener in list(self._listeners):
            listener(self)
