"""mdns_reconciler advertises a changing set of services over mDNS.

A desired-state document lists the services. The `Reconciler` derives their
DNS-SD records and keeps a `RecordAdvertiser` in sync with the document as
it is reloaded.
"""
