"""
Service layer: SkuVault reconciliation for one customer (sync), fan-out over
every customer (fleet) and the periodic trigger (scheduler).
"""
