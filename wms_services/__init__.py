"""
wms_services -- reconciliation services over wms_kernel.

Lot ledger, amendment and void engines, the amend/void command boundary
and the read-side query service.  Engine-dependent services live here so
the kernel never imports wms_engines or wms_config.
"""
