# timebill/importer.py
"""
Picking unbilled time entries to pull into an invoice.
"""

from .time_stats import finalized_entries, is_unbilled


def _unique_by_id(entries):
    seen = set()
    unique = []
    for entry in entries:
        if entry.id in seen:
            continue
        seen.add(entry.id)
        unique.append(entry)
    return unique


def select_for_import(entries, selected_ids):
    """Entries whose id is in `selected_ids`, in their original order, each id at most once."""
    selected_ids = set(selected_ids)
    return [entry for entry in _unique_by_id(entries) if entry.id in selected_ids]


class ImportSelection:
    """
    Multi-select state over the unbilled candidates of an invoice.

    Only finished, billable, not yet invoiced entries are offered. Confirming
    hands back the chosen entries without touching them; linking them to the
    invoice is up to the caller.
    """

    def __init__(self, candidates):
        self.candidates = [
            entry for entry, _ in finalized_entries(_unique_by_id(candidates))
            if is_unbilled(entry)
        ]
        self._known_ids = {entry.id for entry in self.candidates}
        self.selected_ids = set()

    def toggle(self, entry_id):
        if entry_id not in self._known_ids:
            return False
        if entry_id in self.selected_ids:
            self.selected_ids.remove(entry_id)
            return False
        self.selected_ids.add(entry_id)
        return True

    @property
    def selected(self):
        return select_for_import(self.candidates, self.selected_ids)

    @property
    def total_seconds(self):
        return sum(seconds for _, seconds in finalized_entries(self.selected))

    def confirm(self):
        chosen = self.selected
        self.selected_ids = set()
        return chosen


def describe_entry(entry):
    if entry.description:
        return entry.description
    task = getattr(entry, 'task', None)
    if task is not None:
        return task.description
    return f"Time logged {entry.start_time.strftime('%Y-%m-%d')}"


def entries_to_line_items(entries):
    line_items = []
    for entry, seconds in finalized_entries(entries):
        line_items.append({
            'description': describe_entry(entry)[:200],
            'quantity': round(seconds / 3600, 2),
            'unit_price': entry.hourly_rate or 0.0,
            'entry': entry,
        })
    return line_items
