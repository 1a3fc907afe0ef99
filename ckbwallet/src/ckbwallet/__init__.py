"""
ckbwallet - cell enumeration, coin selection and signing for CKB.
"""
