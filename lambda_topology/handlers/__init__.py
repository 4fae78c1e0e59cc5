"""Runtime event handlers deployed as Lambda code.

Only the standard library is used here so the directory can be zipped and
deployed on its own.
"""
