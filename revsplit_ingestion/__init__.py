"""
revsplit_ingestion -- Boundary between backend JSON and typed records.

Normalises percentages, amounts, dates and payment identities coming from
the accounting backend into revsplit_kernel records.

Architecture:
    revsplit_ingestion/ is a top-level package. Nothing in kernel/ or
    engines/ imports from ingestion.
"""
