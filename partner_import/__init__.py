"""Partner Center incremental import.

Pulls customers and, per customer, their users from the Partner Center API
page by page, converts each record into a change entry, and hands the
entries to a consumer identity store in host-paced batches.
"""
