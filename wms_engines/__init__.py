"""
wms_engines -- pure calculation layer.

Engines take plain values and return frozen results.  They never touch a
session, a clock, or the filesystem; services feed them candidates and
apply their plans.
"""
