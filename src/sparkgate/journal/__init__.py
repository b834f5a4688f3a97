"""Activity journal and pending-invoice tracking."""

from sparkgate.journal.activity import ActivityEntry, ActivityJournal
from sparkgate.journal.invoices import PendingInvoice, PendingInvoiceTracker

__all__ = [
    "ActivityEntry",
    "ActivityJournal",
    "PendingInvoice",
    "PendingInvoiceTracker",
]
