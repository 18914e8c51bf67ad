"""
Relay domain helpers: result types, response normalization, warehouse
classification and the reshaping applied to customer, catalog and order
payloads.
"""
