"""Write paths: validation, flagging and ownership checks around storage.

Every operation runs inside the caller's transaction (``with session.begin():``)
and raises the errors in ``gradebook.errors``.
"""
