"""
funder - assemble, sign and broadcast CKB and sUDT transfers.
"""
